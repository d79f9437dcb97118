from __future__ import annotations
import json, importlib.resources as ir
from typing import Any, Dict, Iterable, List

from . import config
from .types import Question, QUESTION_TYPES


def question_from_dict(raw: Dict[str, Any]) -> Question:
    qtype = str(raw.get("type", "")).lower()
    if qtype not in QUESTION_TYPES:
        raise ValueError(f"unknown question type {qtype!r} for {raw.get('id')!r}")
    difficulty = raw.get("difficulty")
    return Question(
        id=str(raw["id"]),
        topic_id=str(raw.get("topicId") or raw.get("topic_id")),
        type=qtype,  # type: ignore[arg-type]
        prompt=str(raw.get("prompt", "")),
        data=dict(raw.get("data") or {}),
        correct=dict(raw.get("correct") or {}),
        points=int(raw.get("points") or config.DEFAULT_POINTS),
        difficulty=None if difficulty is None else int(difficulty),
        feedback=raw.get("feedback"),
    )


def question_to_dict(q: Question) -> Dict[str, Any]:
    out = q.public_dict()
    out["correct"] = dict(q.correct)
    out["feedback"] = q.feedback
    return out


def effective_difficulty(q: Question) -> int:
    return config.DEFAULT_DIFFICULTY if q.difficulty is None else int(q.difficulty)


class QuestionBank:
    """In-memory question source keyed by id and topic."""

    def __init__(self, questions: Iterable[Question]):
        self._by_id: Dict[str, Question] = {}
        self._by_topic: Dict[str, List[Question]] = {}
        for q in questions:
            self._by_id[q.id] = q
            self._by_topic.setdefault(q.topic_id, []).append(q)

    def __len__(self) -> int:
        return len(self._by_id)

    def questions_by_topic(self, topic_id: str) -> List[Question]:
        return list(self._by_topic.get(topic_id, []))

    def questions_by_ids(self, ids: Iterable[str]) -> List[Question]:
        # no ordering guarantee; callers reorder through their own queues
        wanted = set(ids)
        return [q for qid, q in self._by_id.items() if qid in wanted]

    def get(self, question_id: str) -> Question | None:
        return self._by_id.get(question_id)


def load_bank() -> List[Question]:
    data = ir.files(__package__).joinpath("data/bank.json").read_text(encoding="utf-8")
    raw = json.loads(data)
    return [question_from_dict(r) for r in raw]


def answer_reveal(q: Question) -> Dict[str, Any]:
    """Answer key and explanation shown after submission on tests that allow it."""
    return {"correctAnswer": dict(q.correct), "feedback": q.feedback}
