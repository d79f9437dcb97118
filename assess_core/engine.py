# assess_core/engine.py
from __future__ import annotations

import logging
import random
import threading
import uuid
import weakref
from typing import Any, Dict, List, Optional

from .config import load_config, seed_rng
from .errors import AttemptFinishedError, NotFoundError, StateError
from .navigator import (
    AnswerSubmitted,
    AttemptStarted,
    TimeExpired,
    expected_question,
    summarize_effects,
    transition,
)
from .question_bank import answer_reveal
from .types import AttemptState, Question, TopicAdaptiveConfig
from .variant import build_attempt_state

log = logging.getLogger(__name__)


class MemoryAttemptStore:
    """Attempt persistence kept in process memory (tests, single-process demos)."""

    def __init__(self) -> None:
        self._states: Dict[str, Dict[str, Any]] = {}

    def load_attempt_state(self, attempt_id: str) -> Optional[Dict[str, Any]]:
        raw = self._states.get(attempt_id)
        return None if raw is None else dict(raw)

    def save_attempt_state(self, attempt_id: str, state: Dict[str, Any]) -> None:
        self._states[attempt_id] = dict(state)


class AdaptiveEngine:
    """
    Live-context boundary around the navigator.

    Collaborators are duck-typed:
      bank    -> questions_by_topic(topic_id), questions_by_ids(ids)
      catalog -> topics_for_test(test_id), validate(test_id), title(test_id),
                 shows_correct_answers(test_id)
      store   -> load_attempt_state(attempt_id), save_attempt_state(attempt_id, state)
    Store errors propagate unchanged; the engine never retries.
    """

    def __init__(self, bank, catalog, store=None, rng: Optional[random.Random] = None):
        self.bank = bank
        self.catalog = catalog
        self.store = store if store is not None else MemoryAttemptStore()
        self.cfg = load_config()
        self.rng = rng or seed_rng(self.cfg)
        # a lock lives only while some request holds it
        self._locks: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    # ---- helpers ----
    def _lock_for(self, attempt_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(attempt_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[attempt_id] = lock
            return lock

    def _load(self, attempt_id: str) -> AttemptState:
        raw = self.store.load_attempt_state(attempt_id)
        if raw is None:
            raise NotFoundError(f"attempt {attempt_id!r} not found")
        return AttemptState.from_dict(raw)

    def _topics(self, test_id: str) -> List[TopicAdaptiveConfig]:
        return self.catalog.topics_for_test(test_id)

    def _question(self, question_id: str) -> Question:
        found = [q for q in self.bank.questions_by_ids([question_id]) if q.id == question_id]
        if not found:
            raise NotFoundError(f"question {question_id!r} not found")
        return found[0]

    def question_payload(self, state: AttemptState) -> Optional[Dict[str, Any]]:
        where = expected_question(state)
        if where is None:
            return None
        payload = dict(where)
        payload["question"] = self._question(str(where["id"])).public_dict()
        return payload

    # ---- operations ----
    def start_adaptive_attempt(self, test_id: str, learner_id: Optional[str] = None) -> Dict[str, Any]:
        topics = self._topics(test_id)
        self.catalog.validate(test_id)
        attempt_id = str(uuid.uuid4())
        state = build_attempt_state(
            attempt_id, test_id, learner_id, topics, self.bank.questions_by_topic, self.rng
        )
        state, effects = transition(state, AttemptStarted(), topics)
        self.store.save_attempt_state(attempt_id, state.to_dict())
        log.info("attempt %s started test=%s learner=%s topics=%d", attempt_id, test_id, learner_id, len(state.topics))
        summary = summarize_effects(effects)
        return {
            "attemptId": attempt_id,
            "testTitle": self.catalog.title(test_id),
            "firstQuestion": self.question_payload(state),
            "totalTopics": len(state.topics),
            "currentTopicIndex": state.current_topic_index,
            "isFinished": state.is_finished,
            "result": summary["result"],
        }

    def submit_answer(self, attempt_id: str, question_id: str, answer: Any) -> Dict[str, Any]:
        with self._lock_for(attempt_id):
            state = self._load(attempt_id)
            if state.is_finished:
                raise AttemptFinishedError(f"attempt {attempt_id} is already finished")
            if question_id != state.current_question_id:
                log.info(
                    "attempt %s rejected answer for %s (expected %s)",
                    attempt_id, question_id, state.current_question_id,
                )
                raise StateError(f"unexpected question {question_id!r}")
            question = self._question(question_id)
            new_state, effects = transition(
                state, AnswerSubmitted(question_id=question_id, answer=answer, question=question),
                self._topics(state.test_id),
            )
            self.store.save_attempt_state(attempt_id, new_state.to_dict())

        out = summarize_effects(effects)
        if self.catalog.shows_correct_answers(state.test_id):
            out.update(answer_reveal(question))
        out["nextQuestion"] = self.question_payload(new_state)
        out["currentTopicIndex"] = new_state.current_topic_index
        return out

    def expire_attempt(self, attempt_id: str) -> Dict[str, Any]:
        """Finish on an external wall-clock deadline; same path as completion."""

        with self._lock_for(attempt_id):
            state = self._load(attempt_id)
            new_state, effects = transition(state, TimeExpired(), self._topics(state.test_id))
            self.store.save_attempt_state(attempt_id, new_state.to_dict())
        return summarize_effects(effects)

    def get_attempt(self, attempt_id: str) -> Dict[str, Any]:
        state = self._load(attempt_id)
        snapshot = state.to_dict()
        snapshot["currentQuestion"] = self.question_payload(state)
        snapshot["isFinished"] = state.is_finished
        return snapshot
