from __future__ import annotations

import logging
import random
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

from .errors import ValidationError
from .question_bank import effective_difficulty
from .types import (
    AttemptState,
    LevelDefinition,
    LevelState,
    LevelStatus,
    Question,
    TopicAdaptiveConfig,
    TopicState,
    TopicStatus,
)

log = logging.getLogger(__name__)


def start_level_index(level_count: int) -> int:
    """Median level: fewest expected steps to converge from either end."""

    return level_count // 2


def sample_level(pool: Iterable[Question], level: LevelDefinition, rng: random.Random) -> List[str]:
    eligible = [
        q for q in pool
        if level.min_difficulty <= effective_difficulty(q) <= level.max_difficulty
    ]
    rng.shuffle(eligible)
    picked = eligible[: level.questions_count]
    if len(picked) < level.questions_count:
        log.warning(
            "level %s/%d (%s) has %d eligible questions for a quota of %d",
            level.topic_id, level.level_index, level.name, len(picked), level.questions_count,
        )
    return [q.id for q in picked]


def build_attempt_state(
    attempt_id: str,
    test_id: str,
    learner_id: Optional[str],
    topics: Iterable[TopicAdaptiveConfig],
    questions_by_topic: Callable[[str], List[Question]],
    rng: Optional[random.Random] = None,
) -> AttemptState:
    """
    Sample the per-level question queues for one attempt.

    Topics without levels are dropped. The first remaining topic's median
    level starts in progress; its first queued question (or None for an
    empty queue) becomes the expected answer.
    """
    rng = rng or random.Random()
    topic_states: List[TopicState] = []

    for cfg in topics:
        if not cfg.levels:
            log.info("dropping topic %s: no levels configured", cfg.topic_id)
            continue
        pool = questions_by_topic(cfg.topic_id)
        levels: List[LevelState] = []
        for lvl in sorted(cfg.levels, key=lambda l: l.level_index):
            if lvl.questions_count <= 0:
                raise ValidationError(
                    f"{cfg.topic_id} level {lvl.level_index}: questionsCount must be positive"
                )
            levels.append(
                LevelState(
                    level_index=lvl.level_index,
                    name=lvl.name,
                    min_difficulty=lvl.min_difficulty,
                    max_difficulty=lvl.max_difficulty,
                    questions_count=lvl.questions_count,
                    pass_threshold=lvl.pass_threshold,
                    question_ids=sample_level(pool, lvl, rng),
                )
            )
        topic_states.append(
            TopicState(
                topic_id=cfg.topic_id,
                topic_name=cfg.topic_name,
                current_level_index=start_level_index(len(levels)),
                levels=levels,
            )
        )

    if not topic_states:
        raise ValidationError(f"test {test_id!r} has no adaptive topics with levels")

    first = topic_states[0]
    first.status = TopicStatus.IN_PROGRESS
    start = first.levels[first.current_level_index]
    start.status = LevelStatus.IN_PROGRESS

    state = AttemptState(
        attempt_id=attempt_id,
        test_id=test_id,
        learner_id=learner_id,
        topics=topic_states,
        current_topic_index=0,
        current_question_id=start.question_ids[0] if start.question_ids else None,
        started_at=datetime.now(timezone.utc).isoformat(),
    )
    log.debug(
        "variant attempt=%s topics=%d queues=%s",
        attempt_id,
        len(topic_states),
        {t.topic_id: [len(l.question_ids) for l in t.levels] for t in topic_states},
    )
    return state
