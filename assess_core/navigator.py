# assess_core/navigator.py
"""Adaptive level navigation.

``transition(state, event, topics)`` is the only way an attempt changes. It
works on a copy of the state, performs no I/O and returns the new state plus
the effects the caller must publish (next question, level/topic moves, the
final result). The same function runs behind the HTTP service and inside the
offline package.
"""
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from .config import DEBUG_TRACE, TRACE_FIELDS
from .errors import AttemptFinishedError, StateError
from .levels import required_correct
from .result import AttemptResult, build_result
from .scoring import earned_points, is_full_credit, score_answer
from .types import (
    AttemptState,
    LevelState,
    LevelStatus,
    Question,
    TopicAdaptiveConfig,
    TopicState,
    TopicStatus,
    TransitionKind,
)
from .variant import start_level_index

log = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _emit_trace(**values: object) -> None:
    if not DEBUG_TRACE:
        return
    ordered = []
    for key in TRACE_FIELDS:
        if key in values:
            ordered.append(f"{key}={values[key]}")
    if ordered:
        log.info("trace %s", " ".join(str(val) for val in ordered))


# ---- events ----
@dataclass(frozen=True)
class AttemptStarted:
    at: str = field(default_factory=_now_iso)


@dataclass(frozen=True)
class AnswerSubmitted:
    question_id: str
    answer: Any
    question: Question
    at: str = field(default_factory=_now_iso)


@dataclass(frozen=True)
class TimeExpired:
    at: str = field(default_factory=_now_iso)


Event = Union[AttemptStarted, AnswerSubmitted, TimeExpired]


# ---- effects ----
@dataclass(frozen=True)
class AnswerScored:
    question_id: str
    score: float
    is_correct: bool
    earned_points: float


@dataclass(frozen=True)
class LevelTransition:
    kind: TransitionKind
    topic_id: str
    from_level: str
    to_level: Optional[str]
    message: str

    def to_dict(self) -> Dict[str, object]:
        return {
            "type": self.kind.value,
            "topicId": self.topic_id,
            "fromLevel": self.from_level,
            "toLevel": self.to_level,
            "message": self.message,
        }


@dataclass(frozen=True)
class TopicTransition:
    from_topic: str
    to_topic: str

    def to_dict(self) -> Dict[str, object]:
        return {"fromTopic": self.from_topic, "toTopic": self.to_topic}


@dataclass(frozen=True)
class AttemptFinished:
    result: AttemptResult


Effect = Union[AnswerScored, LevelTransition, TopicTransition, AttemptFinished]


def summarize_effects(effects: List[Effect]) -> Dict[str, Any]:
    """Collapse a transition's effects into the answer response fields."""

    scored = next((e for e in effects if isinstance(e, AnswerScored)), None)
    levels = [e for e in effects if isinstance(e, LevelTransition)]
    topics = [e for e in effects if isinstance(e, TopicTransition)]
    finished = next((e for e in effects if isinstance(e, AttemptFinished)), None)
    return {
        "isCorrect": bool(scored.is_correct) if scored else False,
        "score": float(scored.score) if scored else 0.0,
        "earnedPoints": float(scored.earned_points) if scored else 0.0,
        "levelTransition": levels[0].to_dict() if levels else None,
        "levelTransitions": [lt.to_dict() for lt in levels],
        "topicTransition": topics[-1].to_dict() if topics else None,
        "isFinished": finished is not None,
        "result": finished.result.to_dict() if finished else None,
    }


class _Step:
    """Mutable scratch for one transition: the working copy and its outputs."""

    def __init__(self, state: AttemptState, topics: Sequence[TopicAdaptiveConfig], at: str):
        self.state = state
        self.topics = topics
        self.at = at
        self.effects: List[Effect] = []

    def record(self, action: str, topic: Optional[TopicState] = None,
               level: Optional[LevelState] = None, **extra: object) -> None:
        entry: Dict[str, object] = {"t": self.at, "action": action}
        if topic is not None:
            entry["topicId"] = topic.topic_id
            entry["topicName"] = topic.topic_name
        if level is not None:
            entry["levelIndex"] = level.level_index
            entry["levelName"] = level.name
        entry.update(extra)
        self.state.trajectory.append(entry)


def active_position(state: AttemptState) -> Optional[Tuple[TopicState, LevelState]]:
    if state.is_finished or not state.topics:
        return None
    if not 0 <= state.current_topic_index < len(state.topics):
        return None
    topic = state.topics[state.current_topic_index]
    if topic.status is not TopicStatus.IN_PROGRESS:
        return None
    level = topic.levels[topic.current_level_index]
    if level.status is not LevelStatus.IN_PROGRESS:
        return None
    return topic, level


def expected_question(state: AttemptState) -> Optional[Dict[str, object]]:
    """Where the learner stands: the question id expected next and its place in the level."""

    pos = active_position(state)
    if pos is None or state.current_question_id is None:
        return None
    topic, level = pos
    return {
        "id": state.current_question_id,
        "topicId": topic.topic_id,
        "topicName": topic.topic_name,
        "levelName": level.name,
        "levelIndex": level.level_index,
        "questionNumber": len(level.answered_question_ids) + 1,
        "totalInLevel": len(level.question_ids),
    }


def transition(
    state: AttemptState,
    event: Event,
    topics: Sequence[TopicAdaptiveConfig],
) -> Tuple[AttemptState, List[Effect]]:
    """Apply one event; ``state`` itself is never modified."""

    if state.is_finished:
        raise AttemptFinishedError(f"attempt {state.attempt_id} is already finished")

    step = _Step(copy.deepcopy(state), topics, event.at)
    if isinstance(event, AnswerSubmitted):
        _on_answer(step, event)
    elif isinstance(event, AttemptStarted):
        _on_start(step)
    elif isinstance(event, TimeExpired):
        _on_time_expired(step)
    else:
        raise TypeError(f"unsupported event {type(event).__name__}")
    return step.state, step.effects


def _on_start(step: _Step) -> None:
    st = step.state
    if any(e.get("action") == "start" for e in st.trajectory):
        raise StateError(f"attempt {st.attempt_id} already started")
    topic = st.topics[st.current_topic_index]
    level = topic.levels[topic.current_level_index]
    step.record("start", topic, level)
    if not level.question_ids:
        _decide(step, topic, level)


def _on_answer(step: _Step, event: AnswerSubmitted) -> None:
    st = step.state
    if st.current_question_id is None or event.question_id != st.current_question_id:
        raise StateError(
            f"attempt {st.attempt_id} expects question {st.current_question_id!r}, got {event.question_id!r}"
        )
    if event.question is None or event.question.id != event.question_id:
        raise StateError(f"question payload does not match id {event.question_id!r}")
    pos = active_position(st)
    if pos is None:
        raise StateError(f"attempt {st.attempt_id} has no active level")
    topic, level = pos

    ratio = score_answer(event.question, event.answer)
    correct = is_full_credit(ratio)
    level.answered_question_ids.append(event.question_id)
    level.earned_ratio += ratio
    if correct:
        level.correct_count += 1
    st.answers[event.question_id] = event.answer

    step.effects.append(
        AnswerScored(
            question_id=event.question_id,
            score=ratio,
            is_correct=correct,
            earned_points=earned_points(event.question, ratio),
        )
    )
    step.record("answer", topic, level, questionId=event.question_id, isCorrect=correct, score=ratio)
    _decide(step, topic, level)


def _on_time_expired(step: _Step) -> None:
    st = step.state
    pos = active_position(st)
    if pos is not None:
        step.record("time_expired", pos[0], pos[1])
    else:
        step.record("time_expired")
    log.info("attempt %s time limit reached", st.attempt_id)
    _finish(step, reason="time_expired")


def _decide(step: _Step, topic: TopicState, level: LevelState) -> None:
    quota = len(level.question_ids)
    need = required_correct(level.pass_threshold, quota)
    answered = len(level.answered_question_ids)
    remaining = quota - answered
    can_still_pass = level.correct_count + remaining >= need
    already_passed = level.correct_count >= need
    all_answered = remaining <= 0

    if already_passed or (all_answered and level.correct_count >= need):
        decision = "pass"
    elif not can_still_pass or (all_answered and level.correct_count < need):
        decision = "fail"
    else:
        decision = "continue"

    log.debug(
        "decide attempt=%s topic=%s level=%d answered=%d/%d correct=%d required=%d -> %s",
        step.state.attempt_id, topic.topic_id, level.level_index,
        answered, quota, level.correct_count, need, decision,
    )
    _emit_trace(
        attempt=step.state.attempt_id,
        topic=topic.topic_id,
        level=level.level_index,
        question=level.answered_question_ids[-1] if level.answered_question_ids else None,
        score=round(level.earned_ratio, 4),
        correct=level.correct_count,
        required=need,
        remaining=remaining,
        decision=decision,
    )

    if decision == "pass":
        _level_passed(step, topic, level)
    elif decision == "fail":
        _level_failed(step, topic, level)
    else:
        step.state.current_question_id = next(
            qid for qid in level.question_ids if qid not in level.answered_question_ids
        )


def _level_passed(step: _Step, topic: TopicState, level: LevelState) -> None:
    level.status = LevelStatus.PASSED
    idx = topic.current_level_index
    if topic.final_level_index is None or idx > topic.final_level_index:
        topic.final_level_index = idx

    nxt = idx + 1
    if nxt < len(topic.levels) and topic.levels[nxt].status is LevelStatus.PENDING:
        target = topic.levels[nxt]
        step.effects.append(
            LevelTransition(
                kind=TransitionKind.UP,
                topic_id=topic.topic_id,
                from_level=level.name,
                to_level=target.name,
                message=f'Level "{level.name}" passed. Moving up to "{target.name}".',
            )
        )
        step.record("level_up", topic, target, fromLevel=level.name)
        _enter_level(step, topic, nxt)
        return

    if nxt >= len(topic.levels):
        msg = f'Congratulations! Highest level "{level.name}" reached.'
    else:
        # neighbour already resolved earlier in this topic; never re-entered
        msg = f'Topic complete. Achieved level: "{level.name}".'
    _complete_topic(step, topic, level, msg)


def _level_failed(step: _Step, topic: TopicState, level: LevelState) -> None:
    level.status = LevelStatus.FAILED
    if topic.final_level_index is not None:
        achieved = topic.levels[topic.final_level_index]
        _complete_topic(step, topic, level, f'Topic complete. Achieved level: "{achieved.name}".')
        return

    prv = topic.current_level_index - 1
    if prv >= 0 and topic.levels[prv].status is LevelStatus.PENDING:
        target = topic.levels[prv]
        step.effects.append(
            LevelTransition(
                kind=TransitionKind.DOWN,
                topic_id=topic.topic_id,
                from_level=level.name,
                to_level=target.name,
                message=f'Level "{level.name}" not passed. Moving down to "{target.name}".',
            )
        )
        step.record("level_down", topic, target, fromLevel=level.name)
        _enter_level(step, topic, prv)
        return

    if prv < 0:
        msg = f'Base level "{level.name}" not passed.'
    else:
        msg = "Topic complete."
    _complete_topic(step, topic, level, msg)


def _enter_level(step: _Step, topic: TopicState, position: int) -> None:
    level = topic.levels[position]
    topic.current_level_index = position
    level.status = LevelStatus.IN_PROGRESS
    if level.question_ids:
        step.state.current_question_id = level.question_ids[0]
        return
    # nothing to ask: resolve right away so the attempt never stalls on a null question
    log.warning("topic %s level %d has no questions; resolving immediately", topic.topic_id, level.level_index)
    step.state.current_question_id = None
    _decide(step, topic, level)


def _complete_topic(step: _Step, topic: TopicState, level: LevelState, message: str) -> None:
    topic.status = TopicStatus.COMPLETED
    step.effects.append(
        LevelTransition(
            kind=TransitionKind.COMPLETE,
            topic_id=topic.topic_id,
            from_level=level.name,
            to_level=None,
            message=message,
        )
    )
    step.record("topic_complete", topic, level, finalLevelIndex=topic.final_level_index, message=message)
    log.debug("topic %s complete final_level=%s", topic.topic_id, topic.final_level_index)

    st = step.state
    nxt = st.current_topic_index + 1
    if nxt >= len(st.topics):
        _finish(step, reason="completed")
        return

    upcoming = st.topics[nxt]
    step.effects.append(TopicTransition(from_topic=topic.topic_name, to_topic=upcoming.topic_name))
    st.current_topic_index = nxt
    upcoming.status = TopicStatus.IN_PROGRESS
    _enter_level(step, upcoming, start_level_index(len(upcoming.levels)))


def _finish(step: _Step, reason: str) -> None:
    st = step.state
    st.current_question_id = None
    st.finished_at = step.at
    step.record("test_complete", reason=reason)
    result = build_result(st, step.topics, reason=reason)
    st.result = result.to_dict()
    step.effects.append(AttemptFinished(result=result))
    log.info(
        "attempt %s finished reason=%s passed=%s",
        st.attempt_id, reason, result.overall_passed,
    )
