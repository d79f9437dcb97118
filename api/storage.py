"""JSON-file persistence for adaptive attempts.

Attempt states are plain dicts (``AttemptState.to_dict()``) stored one file per
attempt under ``DATA_DIR/attempts``. An optional ``DATA_DIR/tests.json`` replaces
the packaged test catalogue. The module itself satisfies the engine's store
port (``load_attempt_state`` / ``save_attempt_state``).
"""

from __future__ import annotations

import json
import logging
import os
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional


DATA_ROOT = Path(os.getenv("DATA_DIR", "data")).resolve()
ATTEMPTS_DIR = DATA_ROOT / "attempts"
CATALOG_PATH = DATA_ROOT / "tests.json"

_LOCK = threading.Lock()

log = logging.getLogger(__name__)


def _ensure_dirs() -> None:
    ATTEMPTS_DIR.mkdir(parents=True, exist_ok=True)


def _read_json(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        log.warning("unreadable json at %s: %s", path, exc)
        return default


def _write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
    tmp.replace(path)


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _attempt_path(attempt_id: str) -> Path:
    # ids are uuid4 strings; anything else would escape the directory
    safe = "".join(ch for ch in attempt_id if ch.isalnum() or ch == "-")
    return ATTEMPTS_DIR / f"{safe}.json"


def save_attempt_state(attempt_id: str, state: Dict[str, Any]) -> None:
    """Persist the full attempt state, replacing any previous version."""

    _ensure_dirs()
    payload = dict(state)
    payload["savedAt"] = utcnow_iso()
    with _LOCK:
        _write_json(_attempt_path(attempt_id), payload)


def load_attempt_state(attempt_id: str) -> Optional[Dict[str, Any]]:
    """Return the stored state or None when no file exists.

    Unreadable or corrupt files raise; they are not reported as missing.
    """

    path = _attempt_path(attempt_id)
    with _LOCK:
        if not path.exists():
            return None
        raw = json.loads(path.read_text(encoding="utf-8"))
    raw.pop("savedAt", None)
    return raw


def list_attempts_for_learner(learner_id: str) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    if not ATTEMPTS_DIR.exists():
        return out
    for path in ATTEMPTS_DIR.glob("*.json"):
        raw = _read_json(path, None)
        if not raw or raw.get("learnerId") != learner_id:
            continue
        out.append(
            {
                "attemptId": raw.get("attemptId"),
                "testId": raw.get("testId"),
                "startedAt": raw.get("startedAt"),
                "finishedAt": raw.get("finishedAt"),
                "isFinished": raw.get("finishedAt") is not None,
            }
        )
    out.sort(key=lambda r: r.get("startedAt") or "", reverse=True)
    return out


def load_catalog_data() -> Optional[Dict[str, Any]]:
    """Return the deployment's test catalogue override, if one is present."""

    return _read_json(CATALOG_PATH, None)


def save_catalog_data(catalog: Dict[str, Any]) -> None:
    with _LOCK:
        _write_json(CATALOG_PATH, catalog)
