from __future__ import annotations

import copy
import random

import pytest

from assess_core.errors import AttemptFinishedError, StateError
from assess_core.navigator import (
    AnswerSubmitted,
    AttemptStarted,
    LevelTransition,
    TimeExpired,
    TopicTransition,
    expected_question,
    summarize_effects,
    transition,
)
from assess_core.question_bank import QuestionBank
from assess_core.types import LevelStatus, ThresholdType, TopicAdaptiveConfig, TopicStatus, TransitionKind
from assess_core.variant import build_attempt_state
from tests.conftest import build_synthetic_bank, build_topic, right, wrong


def _start(topics, bank, seed=11):
    state = build_attempt_state("att", "t1", "learner", topics, bank.questions_by_topic, random.Random(seed))
    state, effects = transition(state, AttemptStarted(at="2024-01-01T00:00:00+00:00"), topics)
    return state, effects


def _answer(state, topics, bank, ok=True):
    q = bank.get(state.current_question_id)
    ev = AnswerSubmitted(question_id=q.id, answer=right(q) if ok else wrong(q), question=q)
    return transition(state, ev, topics)


def _run(state, topics, bank, pattern):
    all_effects = []
    for ok in pattern:
        state, effects = _answer(state, topics, bank, ok)
        all_effects.extend(effects)
    return state, all_effects


def test_early_pass_moves_up_from_median_level():
    bank = QuestionBank(build_synthetic_bank(topics=["alpha"]))
    topics = [build_topic("alpha", quota=5, threshold=4)]
    state, _ = _start(topics, bank)
    assert state.topics[0].current_level_index == 1

    state, effects = _run(state, topics, bank, [True] * 4)

    topic = state.topics[0]
    assert topic.final_level_index == 1
    assert topic.levels[1].status is LevelStatus.PASSED
    assert len(topic.levels[1].answered_question_ids) == 4
    assert topic.current_level_index == 2
    assert topic.levels[2].status is LevelStatus.IN_PROGRESS
    ups = [e for e in effects if isinstance(e, LevelTransition)]
    assert [e.kind for e in ups] == [TransitionKind.UP]
    assert ups[0].from_level == "Medium" and ups[0].to_level == "Advanced"
    assert state.current_question_id == topic.levels[2].question_ids[0]


def test_early_fail_on_single_level_topic():
    bank = QuestionBank(build_synthetic_bank(topics=["solo"], per_band=12, bands=((0, 100),)))
    topics = [build_topic("solo", quota=10, threshold=8, bands=((0, 100),))]
    state, _ = _start(topics, bank)

    state, effects = _run(state, topics, bank, [True, True, True, False, False])
    assert not state.is_finished

    # 3 correct, 4 left: 7 < 8
    state, effects = _answer(state, topics, bank, ok=False)
    topic = state.topics[0]
    assert topic.final_level_index is None
    assert topic.status is TopicStatus.COMPLETED
    assert topic.levels[0].status is LevelStatus.FAILED
    assert len(topic.levels[0].answered_question_ids) == 6
    assert state.is_finished
    out = summarize_effects(effects)
    assert out["isFinished"] is True
    assert out["levelTransition"]["type"] == "complete"
    assert out["result"]["topicResults"][0]["achievedLevelIndex"] is None
    assert out["result"]["overallPassed"] is False


def test_fail_without_achieved_level_moves_down():
    bank = QuestionBank(build_synthetic_bank(topics=["alpha"]))
    topics = [build_topic("alpha", quota=5, threshold=4)]
    state, _ = _start(topics, bank)

    state, effects = _run(state, topics, bank, [False, False])
    topic = state.topics[0]
    assert topic.levels[1].status is LevelStatus.FAILED
    assert topic.current_level_index == 0
    assert topic.levels[0].status is LevelStatus.IN_PROGRESS
    downs = [e for e in effects if isinstance(e, LevelTransition)]
    assert downs[-1].kind is TransitionKind.DOWN


def test_fail_after_pass_completes_at_achieved_level():
    bank = QuestionBank(build_synthetic_bank(topics=["alpha"]))
    topics = [build_topic("alpha", quota=5, threshold=4)]
    state, _ = _start(topics, bank)
    state, _ = _run(state, topics, bank, [True] * 4)
    state, effects = _run(state, topics, bank, [False, False])

    topic = state.topics[0]
    assert topic.levels[2].status is LevelStatus.FAILED
    assert topic.final_level_index == 1
    assert topic.status is TopicStatus.COMPLETED
    assert state.is_finished
    assert state.result["topicResults"][0]["achievedLevelName"] == "Medium"


def test_pass_at_top_level_completes_topic():
    bank = QuestionBank(build_synthetic_bank(topics=["alpha"]))
    topics = [build_topic("alpha", quota=5, threshold=4)]
    state, _ = _start(topics, bank)
    state, effects = _run(state, topics, bank, [True] * 8)

    topic = state.topics[0]
    assert topic.final_level_index == 2
    assert state.is_finished
    complete = [e for e in effects if isinstance(e, LevelTransition) and e.kind is TransitionKind.COMPLETE]
    assert "Highest level" in complete[0].message


def test_resolved_neighbour_is_never_reentered():
    bank = QuestionBank(build_synthetic_bank(topics=["alpha"]))
    topics = [build_topic("alpha", quota=5, threshold=4)]
    state, _ = _start(topics, bank)
    # Medium fails, Basic passes: Medium is not pending, so the topic closes at Basic
    state, _ = _run(state, topics, bank, [False, False])
    state, effects = _run(state, topics, bank, [True] * 4)

    topic = state.topics[0]
    assert topic.final_level_index == 0
    assert topic.status is TopicStatus.COMPLETED
    assert topic.levels[1].status is LevelStatus.FAILED
    assert not any(isinstance(e, LevelTransition) and e.kind is TransitionKind.UP for e in effects)


def test_topic_transition_enters_median_level_of_next_topic():
    bank = QuestionBank(build_synthetic_bank())
    topics = [build_topic("alpha", quota=3, threshold=2), build_topic("beta", quota=3, threshold=2)]
    state, _ = _start(topics, bank)
    state, effects = _run(state, topics, bank, [True, True, True, True])

    moves = [e for e in effects if isinstance(e, TopicTransition)]
    assert moves == [TopicTransition(from_topic="Alpha", to_topic="Beta")]
    assert state.current_topic_index == 1
    beta = state.topics[1]
    assert beta.status is TopicStatus.IN_PROGRESS
    assert beta.current_level_index == 1
    assert state.current_question_id == beta.levels[1].question_ids[0]
    assert summarize_effects(effects)["topicTransition"] == {"fromTopic": "Alpha", "toTopic": "Beta"}


def test_percent_threshold_rounds_up():
    bank = QuestionBank(build_synthetic_bank(topics=["alpha"]))
    # ceil(3 * 60 / 100) = 2
    topics = [build_topic("alpha", quota=3, threshold=60, threshold_type=ThresholdType.PERCENT)]
    state, _ = _start(topics, bank)
    state, _ = _run(state, topics, bank, [True, True])
    assert state.topics[0].levels[1].status is LevelStatus.PASSED


def test_partial_credit_does_not_count_as_correct():
    bank = QuestionBank(build_synthetic_bank(topics=["alpha"]))
    topics = [build_topic("alpha", quota=5, threshold=4)]
    state, _ = _start(topics, bank)
    q = bank.get(state.current_question_id)
    q.type = "multiple"
    q.correct = {"correctIndices": [0, 1]}
    state, effects = transition(state, AnswerSubmitted(question_id=q.id, answer=[0], question=q), topics)
    level = state.topics[0].levels[1]
    assert level.correct_count == 0
    assert level.earned_ratio == pytest.approx(0.5)
    out = summarize_effects(effects)
    assert out["isCorrect"] is False and out["score"] == pytest.approx(0.5)


def test_resubmitting_an_advanced_question_is_rejected():
    bank = QuestionBank(build_synthetic_bank(topics=["alpha"]))
    topics = [build_topic("alpha")]
    state, _ = _start(topics, bank)
    q = bank.get(state.current_question_id)
    state, _ = transition(state, AnswerSubmitted(question_id=q.id, answer=0, question=q), topics)
    before = copy.deepcopy(state)

    with pytest.raises(StateError):
        transition(state, AnswerSubmitted(question_id=q.id, answer=0, question=q), topics)
    assert state == before


def test_transition_does_not_mutate_input_state():
    bank = QuestionBank(build_synthetic_bank(topics=["alpha"]))
    topics = [build_topic("alpha")]
    state, _ = _start(topics, bank)
    snapshot = copy.deepcopy(state)
    new_state, _ = _answer(state, topics, bank)
    assert state == snapshot
    assert new_state is not state


def test_finished_attempt_rejects_every_event():
    bank = QuestionBank(build_synthetic_bank(topics=["alpha"]))
    topics = [build_topic("alpha")]
    state, _ = _start(topics, bank)
    state, _ = transition(state, TimeExpired(), topics)
    with pytest.raises(AttemptFinishedError):
        transition(state, TimeExpired(), topics)
    q = bank.get("alpha_1_0")
    with pytest.raises(AttemptFinishedError):
        transition(state, AnswerSubmitted(question_id=q.id, answer=0, question=q), topics)


def test_double_start_is_rejected():
    bank = QuestionBank(build_synthetic_bank(topics=["alpha"]))
    topics = [build_topic("alpha")]
    state, _ = _start(topics, bank)
    with pytest.raises(StateError):
        transition(state, AttemptStarted(), topics)


def test_time_expiry_finishes_with_reason():
    bank = QuestionBank(build_synthetic_bank(topics=["alpha"]))
    topics = [build_topic("alpha")]
    state, _ = _start(topics, bank)
    state, _ = _answer(state, topics, bank)
    state, effects = transition(state, TimeExpired(at="2024-01-01T01:00:00+00:00"), topics)

    assert state.is_finished
    assert state.finished_at == "2024-01-01T01:00:00+00:00"
    assert state.current_question_id is None
    assert expected_question(state) is None
    assert state.result["finishedReason"] == "time_expired"
    assert [e["action"] for e in state.trajectory][-2:] == ["time_expired", "test_complete"]
    assert summarize_effects(effects)["isFinished"] is True


def test_empty_start_level_resolves_immediately():
    topics = [build_topic("alpha", quota=2, threshold=1)]
    bank = QuestionBank(build_synthetic_bank(topics=["alpha"], per_band=2, bands=((0, 33),)))
    state, effects = _start(topics, bank)

    topic = state.topics[0]
    # Medium and Advanced have no questions in range: Medium fails, Basic takes over
    assert topic.levels[1].status is LevelStatus.FAILED
    assert topic.current_level_index == 0
    assert state.current_question_id == topic.levels[0].question_ids[0]
    assert any(isinstance(e, LevelTransition) and e.kind is TransitionKind.DOWN for e in effects)


def test_all_levels_empty_finishes_at_start():
    topics = [build_topic("alpha", quota=2, threshold=1)]
    state, effects = _start(topics, QuestionBank([]))
    assert state.is_finished
    assert state.result["topicResults"][0]["achievedLevelIndex"] is None


def test_expected_question_describes_position():
    bank = QuestionBank(build_synthetic_bank(topics=["alpha"]))
    topics = [build_topic("alpha", quota=5, threshold=4)]
    state, _ = _start(topics, bank)
    state, _ = _answer(state, topics, bank)
    where = expected_question(state)
    assert where["id"] == state.current_question_id
    assert where["levelName"] == "Medium"
    assert where["questionNumber"] == 2
    assert where["totalInLevel"] == 5


@pytest.mark.parametrize("seed", range(8))
def test_random_walks_converge_and_stay_monotonic(seed):
    rnd = random.Random(seed)
    bank = QuestionBank(build_synthetic_bank(per_band=6))
    topics = [build_topic("alpha", quota=4, threshold=3), build_topic("beta", quota=4, threshold=3)]
    state, _ = _start(topics, bank, seed=seed)
    quota_total = sum(l.questions_count for t in topics for l in t.levels)
    finals = {t.topic_id: None for t in state.topics}
    asked = 0
    while not state.is_finished:
        state, _ = _answer(state, topics, bank, ok=rnd.random() < 0.6)
        asked += 1
        for t in state.topics:
            if finals[t.topic_id] is not None:
                assert t.final_level_index is not None and t.final_level_index >= finals[t.topic_id]
            finals[t.topic_id] = t.final_level_index
    assert asked <= quota_total
    for t in state.topics:
        visited = [l for l in t.levels if l.status is not LevelStatus.PENDING]
        assert len(visited) <= len(t.levels)
        assert t.status is TopicStatus.COMPLETED


def test_trajectory_records_every_step():
    bank = QuestionBank(build_synthetic_bank(topics=["alpha"]))
    topics = [build_topic("alpha", quota=5, threshold=4)]
    state, _ = _start(topics, bank)
    state, _ = _run(state, topics, bank, [True] * 4)
    actions = [e["action"] for e in state.trajectory]
    assert actions == ["start", "answer", "answer", "answer", "answer", "level_up"]
    last_answer = state.trajectory[-2]
    assert last_answer["isCorrect"] is True and last_answer["score"] == 1.0
    assert state.trajectory[-1]["levelName"] == "Advanced"


def test_topic_without_levels_config_is_ignored_by_result():
    bank = QuestionBank(build_synthetic_bank(topics=["beta"]))
    topics = [TopicAdaptiveConfig("gamma", "Gamma"), build_topic("beta", quota=3, threshold=2)]
    state, _ = _start(topics, bank)
    state, _ = _run(state, topics, bank, [True] * 4)
    assert [r["topicId"] for r in state.result["topicResults"]] == ["beta"]
