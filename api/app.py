from __future__ import annotations
from fastapi import FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
import logging, os, typing as t

# ---- Engine imports ----
from assess_core.engine import AdaptiveEngine
from assess_core.errors import NotFoundError, StateError, ValidationError
from assess_core.levels import LevelCatalog, load_catalog
from assess_core.question_bank import QuestionBank, load_bank
from assess_core.config import AUDIT_EXPORT_ENABLED
from assess_core.audit_export import to_json as trajectory_to_json, to_csv as trajectory_to_csv
from . import storage
from .storage import list_attempts_for_learner, load_catalog_data

log = logging.getLogger(__name__)


def _build_engine() -> AdaptiveEngine:
    override = load_catalog_data()
    catalog = LevelCatalog.from_dict(override) if override else load_catalog()
    bank = QuestionBank(load_bank())
    log.info("engine ready: %d questions, tests=%s", len(bank), ",".join(catalog.test_ids()))
    return AdaptiveEngine(bank, catalog, store=storage)


ENGINE = _build_engine()

app = FastAPI(title="Adaptive Assessment API")


@app.get("/")
def root():
    return {"status": "ok", "service": "adaptive-assessment-api"}


ALLOWED_ORIGINS = [
    o.strip() for o in os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",") if o.strip()
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,  # keep False unless you use cookies
)

# ---- Schemas ----
class StartReq(BaseModel):
    learner_id: str | None = None

class AnswerReq(BaseModel):
    question_id: str
    answer: t.Any = None

# ---- Helpers ----
def _guarded(fn: t.Callable[..., t.Any], *args: t.Any) -> t.Any:
    try:
        return fn(*args)
    except NotFoundError as exc:
        raise HTTPException(404, str(exc))
    except ValidationError as exc:
        raise HTTPException(400, str(exc))
    except StateError as exc:
        log.info("conflict: %s", exc)
        raise HTTPException(409, "attempt state changed; reload the attempt and retry")


def _trajectory(attempt_id: str) -> list[dict[str, t.Any]]:
    if not AUDIT_EXPORT_ENABLED:
        raise HTTPException(404, "trajectory export disabled")
    snapshot = _guarded(ENGINE.get_attempt, attempt_id)
    return list(snapshot.get("trajectory") or [])

# ---- Health ----
@app.get("/health")
def health():
    return {
        "status": "ok",
        "tests": ENGINE.catalog.test_ids(),
        "questions": len(ENGINE.bank),
        "audit_export": AUDIT_EXPORT_ENABLED,
    }

# ---- Attempts ----
@app.post("/api/tests/{test_id}/attempts/start-adaptive", status_code=201)
def start_adaptive(test_id: str, req: StartReq):
    return _guarded(ENGINE.start_adaptive_attempt, test_id, req.learner_id)


@app.post("/api/attempts/{attempt_id}/answer-adaptive")
def answer_adaptive(attempt_id: str, req: AnswerReq):
    return _guarded(ENGINE.submit_answer, attempt_id, req.question_id, req.answer)


@app.post("/api/attempts/{attempt_id}/expire")
def expire(attempt_id: str):
    return _guarded(ENGINE.expire_attempt, attempt_id)


@app.get("/api/attempts/{attempt_id}")
def get_attempt(attempt_id: str):
    return _guarded(ENGINE.get_attempt, attempt_id)


@app.get("/api/attempts/{attempt_id}/trajectory.json")
def get_trajectory_json(attempt_id: str):
    events = _trajectory(attempt_id)
    return {"attempt_id": attempt_id, **trajectory_to_json(events)}


@app.get("/api/attempts/{attempt_id}/trajectory.csv")
def get_trajectory_csv(attempt_id: str):
    body = trajectory_to_csv(_trajectory(attempt_id))
    filename = f"{attempt_id}_trajectory.csv"
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=\"{filename}\""},
    )


@app.get("/api/learners/{learner_id}/attempts")
def list_learner_attempts(learner_id: str):
    return {"attempts": list_attempts_for_learner(learner_id)}
