"""Disconnected execution of an adaptive test.

A bundle embeds everything one test needs (levels, feedback, questions with
their answer keys) as plain JSON data. ``OfflineSession`` runs the very same
variant builder, navigator, scoring and result code as the live engine,
without any store, network or UI dependency.
"""
from __future__ import annotations

import random
import uuid
from typing import Any, Dict, List, Optional

from .levels import topic_from_dict, topic_to_dict, validate_topic
from .navigator import (
    AnswerSubmitted,
    AttemptStarted,
    TimeExpired,
    expected_question,
    summarize_effects,
    transition,
)
from .errors import AttemptFinishedError, NotFoundError, StateError
from .question_bank import QuestionBank, answer_reveal, question_from_dict, question_to_dict
from .result import lms_summary
from .types import AttemptState, TopicAdaptiveConfig
from .variant import build_attempt_state

BUNDLE_VERSION = 1


def build_bundle(test_id: str, catalog, bank) -> Dict[str, Any]:
    topics_out: List[Dict[str, Any]] = []
    for topic in catalog.topics_for_test(test_id):
        entry = topic_to_dict(topic)
        entry["questions"] = [question_to_dict(q) for q in bank.questions_by_topic(topic.topic_id)]
        topics_out.append(entry)
    return {
        "version": BUNDLE_VERSION,
        "testId": test_id,
        "title": catalog.title(test_id),
        "showCorrectAnswers": catalog.shows_correct_answers(test_id),
        "topics": topics_out,
    }


class OfflineSession:
    def __init__(
        self,
        bundle: Dict[str, Any],
        rng: Optional[random.Random] = None,
        learner_id: Optional[str] = None,
        suspended: Optional[Dict[str, Any]] = None,
    ):
        self.test_id = str(bundle["testId"])
        self.title = str(bundle.get("title") or self.test_id)
        self.show_correct_answers = bool(bundle.get("showCorrectAnswers", False))
        self.topics: List[TopicAdaptiveConfig] = [topic_from_dict(t) for t in bundle.get("topics") or []]
        self.bank = QuestionBank(
            question_from_dict(q) for t in bundle.get("topics") or [] for q in t.get("questions") or []
        )
        if suspended is not None:
            self.state = AttemptState.from_dict(suspended)
            return
        for topic in self.topics:
            validate_topic(topic)
        state = build_attempt_state(
            str(uuid.uuid4()), self.test_id, learner_id, self.topics, self.bank.questions_by_topic, rng
        )
        self.state, _ = transition(state, AttemptStarted(), self.topics)

    @classmethod
    def resume(cls, bundle: Dict[str, Any], suspend_data: Dict[str, Any]) -> "OfflineSession":
        return cls(bundle, suspended=suspend_data)

    @property
    def is_finished(self) -> bool:
        return self.state.is_finished

    def current_question(self) -> Optional[Dict[str, Any]]:
        where = expected_question(self.state)
        if where is None:
            return None
        q = self.bank.get(str(where["id"]))
        if q is None:
            raise NotFoundError(f"question {where['id']!r} missing from bundle")
        payload = dict(where)
        payload["question"] = q.public_dict()
        return payload

    def submit(self, question_id: str, answer: Any) -> Dict[str, Any]:
        if self.state.is_finished:
            raise AttemptFinishedError(f"attempt {self.state.attempt_id} is already finished")
        if question_id != self.state.current_question_id:
            raise StateError(f"unexpected question {question_id!r}")
        question = self.bank.get(question_id)
        if question is None:
            raise NotFoundError(f"question {question_id!r} missing from bundle")
        self.state, effects = transition(
            self.state, AnswerSubmitted(question_id=question_id, answer=answer, question=question), self.topics
        )
        out = summarize_effects(effects)
        if self.show_correct_answers:
            out.update(answer_reveal(question))
        out["nextQuestion"] = self.current_question()
        return out

    def expire(self) -> Dict[str, Any]:
        self.state, effects = transition(self.state, TimeExpired(), self.topics)
        return summarize_effects(effects)

    def suspend_data(self) -> Dict[str, Any]:
        return self.state.to_dict()

    def lms_summary(self) -> Optional[Dict[str, Any]]:
        if self.state.result is None:
            return None
        return lms_summary(self.state.result)
