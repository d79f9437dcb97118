"""Level configuration: parsing, pass thresholds and configuration checks."""
from __future__ import annotations

import json
import logging
import math
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from . import config
from .errors import NotFoundError, ValidationError
from .types import LevelDefinition, Link, PassThreshold, ThresholdType, TopicAdaptiveConfig

log = logging.getLogger(__name__)


def required_correct(threshold: PassThreshold, quota: int) -> int:
    """Fully-correct answers needed to pass a level holding ``quota`` questions."""

    if threshold.type is ThresholdType.PERCENT:
        return int(math.ceil(quota * threshold.value / 100.0))
    return int(threshold.value)


def level_from_dict(topic_id: str, raw: Dict[str, Any]) -> LevelDefinition:
    links = [Link(title=str(l.get("title", "")), url=str(l.get("url", ""))) for l in raw.get("links") or []]
    return LevelDefinition(
        topic_id=topic_id,
        level_index=int(raw["levelIndex"]),
        name=str(raw.get("levelName") or raw.get("name") or f"Level {raw['levelIndex']}"),
        min_difficulty=int(raw.get("minDifficulty", config.DIFFICULTY_MIN)),
        max_difficulty=int(raw.get("maxDifficulty", config.DIFFICULTY_MAX)),
        questions_count=int(raw.get("questionsCount", 0)),
        pass_threshold=PassThreshold(
            value=int(raw.get("passThreshold", 0)),
            type=ThresholdType(raw.get("passThresholdType", "percent")),
        ),
        feedback=raw.get("feedback"),
        links=links,
    )


def topic_from_dict(raw: Dict[str, Any]) -> TopicAdaptiveConfig:
    topic_id = str(raw["topicId"])
    levels = [level_from_dict(topic_id, lvl) for lvl in raw.get("levels") or []]
    levels.sort(key=lambda l: l.level_index)
    return TopicAdaptiveConfig(
        topic_id=topic_id,
        topic_name=str(raw.get("topicName") or topic_id),
        levels=levels,
        failure_feedback=raw.get("failureFeedback"),
    )


def topic_to_dict(topic: TopicAdaptiveConfig) -> Dict[str, Any]:
    return {
        "topicId": topic.topic_id,
        "topicName": topic.topic_name,
        "failureFeedback": topic.failure_feedback,
        "levels": [
            {
                "levelIndex": l.level_index,
                "levelName": l.name,
                "minDifficulty": l.min_difficulty,
                "maxDifficulty": l.max_difficulty,
                "questionsCount": l.questions_count,
                "passThreshold": l.pass_threshold.value,
                "passThresholdType": l.pass_threshold.type.value,
                "feedback": l.feedback,
                "links": [{"title": k.title, "url": k.url} for k in l.links],
            }
            for l in topic.levels
        ],
    }


def validate_topic(topic: TopicAdaptiveConfig, strict: Optional[bool] = None) -> List[str]:
    """
    Check one topic's levels. Non-positive quotas always fail; infeasible
    thresholds and inverted bands fail only in strict mode. Band gaps and
    overlaps are returned as warnings.
    """
    strict = config.STRICT_LEVEL_VALIDATION if strict is None else strict
    warnings: List[str] = []
    seen: set[int] = set()
    for lvl in topic.levels:
        label = f"{topic.topic_id} level {lvl.level_index} ({lvl.name})"
        if lvl.level_index in seen:
            raise ValidationError(f"{label}: duplicate level index")
        seen.add(lvl.level_index)
        if lvl.questions_count <= 0:
            raise ValidationError(f"{label}: questionsCount must be positive, got {lvl.questions_count}")

        problems: List[str] = []
        thr = lvl.pass_threshold
        if thr.value < 0:
            problems.append(f"pass threshold {thr.value} is negative")
        if thr.type is ThresholdType.PERCENT and thr.value > 100:
            problems.append(f"percent threshold {thr.value} exceeds 100")
        need = required_correct(thr, lvl.questions_count)
        if need > lvl.questions_count:
            problems.append(f"requires {need} correct but only {lvl.questions_count} questions are asked")
        if lvl.min_difficulty > lvl.max_difficulty:
            problems.append(f"difficulty band [{lvl.min_difficulty},{lvl.max_difficulty}] is inverted")

        for msg in problems:
            if strict:
                raise ValidationError(f"{label}: {msg}")
            warnings.append(f"{label}: {msg}")

    if config.WARN_BAND_GAPS:
        ordered = sorted(topic.levels, key=lambda l: l.level_index)
        for lo, hi in zip(ordered, ordered[1:]):
            if hi.min_difficulty <= lo.max_difficulty:
                warnings.append(
                    f"{topic.topic_id}: bands of levels {lo.level_index} and {hi.level_index} overlap"
                )
            elif hi.min_difficulty > lo.max_difficulty + 1:
                warnings.append(
                    f"{topic.topic_id}: difficulties {lo.max_difficulty + 1}..{hi.min_difficulty - 1} "
                    f"fall between levels {lo.level_index} and {hi.level_index}"
                )

    for msg in warnings:
        log.warning("level config: %s", msg)
    return warnings


class LevelCatalog:
    """Per-test adaptive configuration: topics in order, with their levels."""

    def __init__(
        self,
        tests: Dict[str, List[TopicAdaptiveConfig]],
        titles: Optional[Dict[str, str]] = None,
        reveal: Optional[Dict[str, bool]] = None,
    ):
        self._tests = {tid: list(topics) for tid, topics in tests.items()}
        self._titles = dict(titles or {})
        self._reveal = {tid: bool(v) for tid, v in (reveal or {}).items()}

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "LevelCatalog":
        tests: Dict[str, List[TopicAdaptiveConfig]] = {}
        titles: Dict[str, str] = {}
        reveal: Dict[str, bool] = {}
        for t in raw.get("tests") or []:
            tid = str(t["id"])
            tests[tid] = [topic_from_dict(x) for x in t.get("topics") or []]
            titles[tid] = str(t.get("title") or tid)
            reveal[tid] = bool(t.get("showCorrectAnswers", False))
        return cls(tests, titles, reveal)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tests": [
                {
                    "id": tid,
                    "title": self._titles.get(tid, tid),
                    "showCorrectAnswers": self.shows_correct_answers(tid),
                    "topics": [topic_to_dict(x) for x in topics],
                }
                for tid, topics in self._tests.items()
            ]
        }

    def test_ids(self) -> List[str]:
        return list(self._tests)

    def title(self, test_id: str) -> str:
        return self._titles.get(test_id, test_id)

    def shows_correct_answers(self, test_id: str) -> bool:
        """Whether answer responses reveal the key and question feedback."""
        return self._reveal.get(test_id, False)

    def topics_for_test(self, test_id: str) -> List[TopicAdaptiveConfig]:
        if test_id not in self._tests:
            raise NotFoundError(f"test {test_id!r} not found")
        return list(self._tests[test_id])

    def _topic(self, test_id: str, topic_id: str) -> TopicAdaptiveConfig:
        for t in self.topics_for_test(test_id):
            if t.topic_id == topic_id:
                return t
        raise NotFoundError(f"topic {topic_id!r} is not configured for test {test_id!r}")

    def levels_for_topic(self, test_id: str, topic_id: str) -> List[LevelDefinition]:
        return sorted(self._topic(test_id, topic_id).levels, key=lambda l: l.level_index)

    def topic_failure_feedback(self, test_id: str, topic_id: str) -> Optional[str]:
        return self._topic(test_id, topic_id).failure_feedback

    def validate(self, test_id: str, strict: Optional[bool] = None) -> List[str]:
        warnings: List[str] = []
        for topic in self.topics_for_test(test_id):
            warnings.extend(validate_topic(topic, strict=strict))
        return warnings


def load_catalog(path: Optional[Path] = None) -> LevelCatalog:
    p = path or Path(__file__).with_name("data") / "tests.json"
    with p.open("r", encoding="utf-8") as f:
        return LevelCatalog.from_dict(json.load(f))


def iter_levels(topics: Iterable[TopicAdaptiveConfig]) -> Iterable[LevelDefinition]:
    for t in topics:
        yield from t.levels
