from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

QuestionType = Literal["single", "multiple", "matching", "ranking"]
QUESTION_TYPES: tuple[str, ...] = ("single", "multiple", "matching", "ranking")


class LevelStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    PASSED = "passed"
    FAILED = "failed"


class TopicStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class TransitionKind(str, Enum):
    UP = "up"
    DOWN = "down"
    COMPLETE = "complete"


class ThresholdType(str, Enum):
    PERCENT = "percent"
    ABSOLUTE = "absolute"


@dataclass
class Question:
    id: str; topic_id: str; type: QuestionType; prompt: str
    data: Dict[str, Any] = field(default_factory=dict)
    correct: Dict[str, Any] = field(default_factory=dict)
    points: int = 1
    difficulty: Optional[int] = 50
    feedback: Optional[str] = None

    def public_dict(self) -> Dict[str, Any]:
        """Learner-facing view: never carries the answer key."""

        return {
            "id": self.id,
            "topicId": self.topic_id,
            "type": self.type,
            "prompt": self.prompt,
            "data": dict(self.data),
            "points": self.points,
            "difficulty": self.difficulty,
        }


@dataclass
class Link:
    title: str; url: str


@dataclass
class PassThreshold:
    value: int
    type: ThresholdType = ThresholdType.PERCENT


@dataclass
class LevelDefinition:
    topic_id: str
    level_index: int
    name: str
    min_difficulty: int
    max_difficulty: int
    questions_count: int
    pass_threshold: PassThreshold
    feedback: Optional[str] = None
    links: List[Link] = field(default_factory=list)


@dataclass
class TopicAdaptiveConfig:
    topic_id: str
    topic_name: str
    levels: List[LevelDefinition] = field(default_factory=list)
    failure_feedback: Optional[str] = None


@dataclass
class LevelState:
    level_index: int
    name: str
    min_difficulty: int
    max_difficulty: int
    questions_count: int
    pass_threshold: PassThreshold
    question_ids: List[str] = field(default_factory=list)
    answered_question_ids: List[str] = field(default_factory=list)
    correct_count: int = 0
    earned_ratio: float = 0.0
    status: LevelStatus = LevelStatus.PENDING

    def to_dict(self) -> Dict[str, object]:
        return {
            "levelIndex": self.level_index,
            "levelName": self.name,
            "minDifficulty": self.min_difficulty,
            "maxDifficulty": self.max_difficulty,
            "questionsCount": self.questions_count,
            "passThreshold": self.pass_threshold.value,
            "passThresholdType": self.pass_threshold.type.value,
            "questionIds": list(self.question_ids),
            "answeredQuestionIds": list(self.answered_question_ids),
            "correctCount": self.correct_count,
            "earnedRatio": self.earned_ratio,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "LevelState":
        return cls(
            level_index=int(raw["levelIndex"]),
            name=str(raw["levelName"]),
            min_difficulty=int(raw["minDifficulty"]),
            max_difficulty=int(raw["maxDifficulty"]),
            questions_count=int(raw["questionsCount"]),
            pass_threshold=PassThreshold(
                value=int(raw["passThreshold"]),
                type=ThresholdType(raw.get("passThresholdType", "percent")),
            ),
            question_ids=list(raw.get("questionIds") or []),
            answered_question_ids=list(raw.get("answeredQuestionIds") or []),
            correct_count=int(raw.get("correctCount", 0)),
            earned_ratio=float(raw.get("earnedRatio", 0.0)),
            status=LevelStatus(raw.get("status", "pending")),
        )


@dataclass
class TopicState:
    topic_id: str
    topic_name: str
    current_level_index: int
    levels: List[LevelState] = field(default_factory=list)
    final_level_index: Optional[int] = None
    status: TopicStatus = TopicStatus.PENDING

    def to_dict(self) -> Dict[str, object]:
        return {
            "topicId": self.topic_id,
            "topicName": self.topic_name,
            "currentLevelIndex": self.current_level_index,
            "levelsState": [lvl.to_dict() for lvl in self.levels],
            "finalLevelIndex": self.final_level_index,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "TopicState":
        final = raw.get("finalLevelIndex")
        return cls(
            topic_id=str(raw["topicId"]),
            topic_name=str(raw.get("topicName") or ""),
            current_level_index=int(raw["currentLevelIndex"]),
            levels=[LevelState.from_dict(x) for x in raw.get("levelsState") or []],
            final_level_index=None if final is None else int(final),
            status=TopicStatus(raw.get("status", "pending")),
        )


@dataclass
class AttemptState:
    attempt_id: str
    test_id: str
    learner_id: Optional[str]
    topics: List[TopicState] = field(default_factory=list)
    current_topic_index: int = 0
    current_question_id: Optional[str] = None
    answers: Dict[str, Any] = field(default_factory=dict)
    trajectory: List[Dict[str, object]] = field(default_factory=list)
    started_at: Optional[str] = None
    finished_at: Optional[str] = None
    result: Optional[Dict[str, Any]] = None

    @property
    def is_finished(self) -> bool:
        return self.finished_at is not None

    def to_dict(self) -> Dict[str, object]:
        """JSON-friendly representation used for persistence."""

        return {
            "mode": "adaptive",
            "attemptId": self.attempt_id,
            "testId": self.test_id,
            "learnerId": self.learner_id,
            "topics": [t.to_dict() for t in self.topics],
            "currentTopicIndex": self.current_topic_index,
            "currentQuestionId": self.current_question_id,
            "answers": dict(self.answers),
            "trajectory": [dict(e) for e in self.trajectory],
            "startedAt": self.started_at,
            "finishedAt": self.finished_at,
            "result": self.result,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "AttemptState":
        return cls(
            attempt_id=str(raw["attemptId"]),
            test_id=str(raw["testId"]),
            learner_id=raw.get("learnerId"),
            topics=[TopicState.from_dict(t) for t in raw.get("topics") or []],
            current_topic_index=int(raw.get("currentTopicIndex", 0)),
            current_question_id=raw.get("currentQuestionId"),
            answers=dict(raw.get("answers") or {}),
            trajectory=[dict(e) for e in raw.get("trajectory") or []],
            started_at=raw.get("startedAt"),
            finished_at=raw.get("finishedAt"),
            result=raw.get("result"),
        )
