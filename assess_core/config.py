from __future__ import annotations
import os, json, pathlib, random


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


DEFAULT_POINTS: int = 1
DEFAULT_DIFFICULTY: int = 50
DIFFICULTY_MIN: int = 0
DIFFICULTY_MAX: int = 100

# reject infeasible quotas/thresholds when a test is configured
STRICT_LEVEL_VALIDATION: bool = True
# band gaps and overlaps are reported, never rejected
WARN_BAND_GAPS: bool = True

AUDIT_EXPORT_ENABLED: bool = True

DEBUG_TRACE: bool = False
DEBUG_SEED: int | None = None
TRACE_FIELDS: tuple[str, ...] = (
    "attempt",
    "topic",
    "level",
    "question",
    "score",
    "correct",
    "required",
    "remaining",
    "decision",
)

# env overrides; unset variables keep the defaults above
STRICT_LEVEL_VALIDATION = _env_bool("STRICT_LEVEL_VALIDATION", STRICT_LEVEL_VALIDATION)
WARN_BAND_GAPS = _env_bool("WARN_BAND_GAPS", WARN_BAND_GAPS)
AUDIT_EXPORT_ENABLED = _env_bool("AUDIT_EXPORT_ENABLED", AUDIT_EXPORT_ENABLED)
DEBUG_TRACE = _env_bool("DEBUG_TRACE", False)
_seed_raw = os.getenv("DEBUG_SEED")
DEBUG_SEED = _env_int("DEBUG_SEED", 0) if _seed_raw else None


def load_config() -> dict:
    cfg = {}
    p = pathlib.Path("config.json")
    if p.exists():
        try: cfg = json.loads(p.read_text(encoding="utf-8"))
        except (OSError, ValueError): cfg = {}
    e = os.environ
    # unparsable SEED keeps the config.json value (or none)
    if e.get("SEED"): cfg["SEED"] = _env_int("SEED", cfg.get("SEED"))
    if e.get("DATA_DIR"): cfg["DATA_DIR"] = e.get("DATA_DIR")
    return cfg


def seed_rng(cfg: dict) -> random.Random:
    s = cfg.get("SEED")
    if s is None:
        s = DEBUG_SEED
    return random.Random(int(s)) if s is not None else random.Random()
