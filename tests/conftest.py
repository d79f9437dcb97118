from __future__ import annotations

import random

import pytest

from assess_core.levels import LevelCatalog
from assess_core.question_bank import QuestionBank
from assess_core.types import (
    LevelDefinition,
    Link,
    PassThreshold,
    Question,
    ThresholdType,
    TopicAdaptiveConfig,
)

BANDS = ((0, 33), (34, 66), (67, 100))
LEVEL_NAMES = ("Basic", "Medium", "Advanced")


def build_levels(
    topic_id: str,
    *,
    quota: int = 5,
    threshold: int = 4,
    threshold_type: ThresholdType = ThresholdType.ABSOLUTE,
    bands: tuple[tuple[int, int], ...] = BANDS,
) -> list[LevelDefinition]:
    """Levels with one name per band, a shared quota and pass threshold."""

    levels: list[LevelDefinition] = []
    for idx, (lo, hi) in enumerate(bands):
        name = LEVEL_NAMES[idx] if idx < len(LEVEL_NAMES) else f"Level {idx}"
        levels.append(
            LevelDefinition(
                topic_id=topic_id,
                level_index=idx,
                name=name,
                min_difficulty=lo,
                max_difficulty=hi,
                questions_count=quota,
                pass_threshold=PassThreshold(threshold, threshold_type),
                feedback=f"{topic_id} {name} feedback",
                links=[Link(title=f"{name} course", url=f"https://example.org/{topic_id}/{idx}")],
            )
        )
    return levels


def build_topic(topic_id: str, **kwargs) -> TopicAdaptiveConfig:
    return TopicAdaptiveConfig(
        topic_id=topic_id,
        topic_name=topic_id.title(),
        levels=build_levels(topic_id, **kwargs),
        failure_feedback=f"{topic_id} basics first",
    )


def build_synthetic_bank(
    *,
    topics: list[str] | None = None,
    per_band: int = 6,
    bands: tuple[tuple[int, int], ...] = BANDS,
) -> list[Question]:
    """Deterministic single-choice bank; option 0 is always the key."""

    questions: list[Question] = []
    for topic_id in topics or ["alpha", "beta"]:
        for band_idx, (lo, hi) in enumerate(bands):
            step = max(1, (hi - lo) // max(per_band, 1))
            for i in range(per_band):
                questions.append(
                    Question(
                        id=f"{topic_id}_{band_idx}_{i}",
                        topic_id=topic_id,
                        type="single",
                        prompt=f"{topic_id} band {band_idx} #{i}",
                        data={"options": ["A", "B", "C", "D"]},
                        correct={"correctIndex": 0},
                        feedback=f"Option A answers {topic_id} band {band_idx} #{i}.",
                        difficulty=min(hi, lo + i * step),
                    )
                )
    return questions


def right(question: Question):
    if question.type == "single":
        return question.correct["correctIndex"]
    if question.type == "multiple":
        return list(question.correct["correctIndices"])
    if question.type == "matching":
        return {str(p["left"]): p["right"] for p in question.correct["pairs"]}
    return list(question.correct["correctOrder"])


def wrong(question: Question):
    if question.type == "single":
        return question.correct["correctIndex"] + 1
    return None


def build_catalog(
    test_id: str = "t1",
    topics: list[TopicAdaptiveConfig] | None = None,
    show_correct_answers: bool = False,
) -> LevelCatalog:
    topics = topics if topics is not None else [build_topic("alpha"), build_topic("beta")]
    return LevelCatalog({test_id: topics}, {test_id: "Synthetic test"}, {test_id: show_correct_answers})


@pytest.fixture
def synthetic_bank() -> QuestionBank:
    return QuestionBank(build_synthetic_bank())


@pytest.fixture
def catalog() -> LevelCatalog:
    return build_catalog()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(7)
