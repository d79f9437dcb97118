from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from .types import AttemptState, Link, LevelStatus, TopicAdaptiveConfig


@dataclass(frozen=True)
class LevelAttempt:
    level_index: int
    level_name: str
    questions_answered: int
    correct_count: int
    status: LevelStatus


@dataclass(frozen=True)
class TopicResult:
    topic_id: str
    topic_name: str
    achieved_level_index: Optional[int]
    achieved_level_name: Optional[str]
    level_percent: float
    total_questions_answered: int
    total_correct: int
    earned_score: float
    levels_attempted: Tuple[LevelAttempt, ...] = ()
    feedback: Optional[str] = None
    recommended_links: Tuple[Link, ...] = ()

    @property
    def passed(self) -> bool:
        return self.achieved_level_index is not None


@dataclass(frozen=True)
class AttemptResult:
    overall_passed: bool
    topic_results: Tuple[TopicResult, ...] = field(default_factory=tuple)
    finished_reason: str = "completed"

    def to_dict(self) -> Dict[str, object]:
        return {
            "mode": "adaptive",
            "overallPassed": self.overall_passed,
            "finishedReason": self.finished_reason,
            "topicResults": [
                {
                    "topicId": tr.topic_id,
                    "topicName": tr.topic_name,
                    "achievedLevelIndex": tr.achieved_level_index,
                    "achievedLevelName": tr.achieved_level_name,
                    "levelPercent": tr.level_percent,
                    "totalQuestionsAnswered": tr.total_questions_answered,
                    "totalCorrect": tr.total_correct,
                    "earnedScore": tr.earned_score,
                    "levelsAttempted": [
                        {
                            "levelIndex": la.level_index,
                            "levelName": la.level_name,
                            "questionsAnswered": la.questions_answered,
                            "correctCount": la.correct_count,
                            "status": la.status.value,
                        }
                        for la in tr.levels_attempted
                    ],
                    "feedback": tr.feedback,
                    "recommendedLinks": [{"title": l.title, "url": l.url} for l in tr.recommended_links],
                }
                for tr in self.topic_results
            ],
        }


def build_result(
    state: AttemptState,
    topics: Sequence[TopicAdaptiveConfig],
    reason: str = "completed",
) -> AttemptResult:
    """Aggregate achieved levels per topic; passing needs a level in every topic."""

    configs = {t.topic_id: t for t in topics}
    out: List[TopicResult] = []
    for topic in state.topics:
        cfg = configs.get(topic.topic_id)
        answered = 0
        correct = 0
        earned = 0.0
        attempted: List[LevelAttempt] = []
        for lvl in topic.levels:
            if lvl.status is LevelStatus.PENDING:
                continue
            answered += len(lvl.answered_question_ids)
            correct += lvl.correct_count
            earned += lvl.earned_ratio
            attempted.append(
                LevelAttempt(
                    level_index=lvl.level_index,
                    level_name=lvl.name,
                    questions_answered=len(lvl.answered_question_ids),
                    correct_count=lvl.correct_count,
                    status=lvl.status,
                )
            )

        achieved_name: Optional[str] = None
        achieved_index: Optional[int] = None
        percent = 0.0
        links: Tuple[Link, ...] = ()
        if topic.final_level_index is not None:
            achieved = topic.levels[topic.final_level_index]
            achieved_name = achieved.name
            achieved_index = topic.final_level_index
            n = len(achieved.answered_question_ids)
            percent = 100.0 * achieved.correct_count / n if n else 0.0
            level_cfg = None
            if cfg is not None:
                level_cfg = next((l for l in cfg.levels if l.level_index == achieved.level_index), None)
            feedback = level_cfg.feedback if level_cfg else None
            links = tuple(level_cfg.links) if level_cfg else ()
        else:
            feedback = cfg.failure_feedback if cfg else None

        out.append(
            TopicResult(
                topic_id=topic.topic_id,
                topic_name=topic.topic_name,
                achieved_level_index=achieved_index,
                achieved_level_name=achieved_name,
                level_percent=percent,
                total_questions_answered=answered,
                total_correct=correct,
                earned_score=round(earned, 6),
                levels_attempted=tuple(attempted),
                feedback=feedback,
                recommended_links=links,
            )
        )

    return AttemptResult(
        overall_passed=all(tr.passed for tr in out),
        topic_results=tuple(out),
        finished_reason=reason,
    )


def lms_summary(result: Dict[str, object]) -> Dict[str, object]:
    """Flatten a stored result into the score block an LMS host expects.

    Adaptive questions weigh one point each.
    """
    topic_rows = result.get("topicResults") or []
    total = 0
    correct = 0
    topics_out: List[Dict[str, object]] = []
    for tr in topic_rows:  # type: ignore[union-attr]
        answered = int(tr.get("totalQuestionsAnswered", 0))
        hits = int(tr.get("totalCorrect", 0))
        total += answered
        correct += hits
        topics_out.append({
            "topicId": tr.get("topicId"),
            "topicName": tr.get("topicName"),
            "correct": hits,
            "total": answered,
            "percent": float(tr.get("levelPercent", 0.0)),
            "earnedPoints": hits,
            "possiblePoints": answered,
            "passed": tr.get("achievedLevelIndex") is not None,
            "achievedLevelName": tr.get("achievedLevelName"),
            "recommendedCourses": list(tr.get("recommendedLinks") or []),
        })
    return {
        "correct": correct,
        "totalQuestions": total,
        "earnedPoints": correct,
        "possiblePoints": total,
        "percent": (100.0 * correct / total) if total else 0.0,
        "passed": bool(result.get("overallPassed")),
        "topicResults": topics_out,
    }
