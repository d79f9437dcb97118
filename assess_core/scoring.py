"""Answer scoring shared by the live service and the offline package.

Keep this module free of project and third-party imports: both execution
contexts load it as-is, and any divergence between them is a grading bug.
"""
from __future__ import annotations
from typing import Any, Dict, List, Optional

FULL_CREDIT = 1.0


def _clamp01(x: float) -> float:
    try:
        xf = float(x)
    except (TypeError, ValueError):
        return 0.0
    if xf != xf: return 0.0
    if xf < 0.0: return 0.0
    if xf > 1.0: return 1.0
    return xf


def _as_index(v: Any) -> Optional[int]:
    # bool is an int subclass; a true/false payload is not an option index
    if isinstance(v, bool):
        return None
    if isinstance(v, int):
        return v
    if isinstance(v, str):
        s = v.strip()
        body = s[1:] if s.startswith("-") else s
        # str.isdigit() also accepts superscripts and other non-ASCII digits
        if body.isascii() and body.isdecimal():
            try:
                return int(s)
            except ValueError:  # past the int() digit limit
                return None
    return None


def _index_list(raw: Any) -> Optional[List[int]]:
    if not isinstance(raw, (list, tuple)):
        return None
    out: List[int] = []
    for v in raw:
        idx = _as_index(v)
        if idx is None:
            return None
        out.append(idx)
    return out


def _correct_of(question: Any) -> Dict[str, Any]:
    key = getattr(question, "correct", None)
    if key is None and isinstance(question, dict):
        key = question.get("correct")
    return key if isinstance(key, dict) else {}


def _type_of(question: Any) -> str:
    t = getattr(question, "type", None)
    if t is None and isinstance(question, dict):
        t = question.get("type")
    return str(t or "").lower()


def _score_single(correct: Dict[str, Any], answer: Any) -> float:
    chosen = _as_index(answer)
    key = _as_index(correct.get("correctIndex"))
    if chosen is None or key is None:
        return 0.0
    return 1.0 if chosen == key else 0.0


def _score_multiple(correct: Dict[str, Any], answer: Any) -> float:
    keys = _index_list(correct.get("correctIndices"))
    chosen = _index_list(answer)
    if not keys or chosen is None:
        return 0.0
    key_set = set(keys)
    chosen_set = set(chosen)
    hits = len(chosen_set & key_set)
    misses = len(chosen_set - key_set)
    return _clamp01(max(0.0, (hits - misses) / float(len(key_set))))


def _score_matching(correct: Dict[str, Any], answer: Any) -> float:
    pairs = correct.get("pairs")
    if not isinstance(pairs, list) or not pairs:
        return 0.0
    if not isinstance(answer, dict):
        return 0.0
    # JSON object keys arrive as strings
    submitted: Dict[int, Optional[int]] = {}
    for k, v in answer.items():
        left = _as_index(k)
        if left is not None:
            submitted[left] = _as_index(v)
    matched = 0
    for p in pairs:
        if not isinstance(p, dict):
            continue
        left = _as_index(p.get("left"))
        right = _as_index(p.get("right"))
        if left is None or right is None:
            continue
        if submitted.get(left) == right:
            matched += 1
    return _clamp01(matched / float(len(pairs)))


def _score_ranking(correct: Dict[str, Any], answer: Any) -> float:
    order = _index_list(correct.get("correctOrder"))
    submitted = _index_list(answer)
    if not order or submitted is None:
        return 0.0
    if len(submitted) != len(order):
        return 0.0
    same = sum(1 for a, b in zip(submitted, order) if a == b)
    return _clamp01(same / float(len(order)))


_SCORERS = {
    "single": _score_single,
    "multiple": _score_multiple,
    "matching": _score_matching,
    "ranking": _score_ranking,
}


def score_answer(question: Any, answer: Any) -> float:
    """
    Returns credit in 0..1 for one submitted answer.
    single: int index; multiple: index list; matching: {left: right};
    ranking: permutation of item indices.
    Missing or malformed answers score 0 instead of raising.
    """
    if answer is None:
        return 0.0
    scorer = _SCORERS.get(_type_of(question))
    if scorer is None:
        return 0.0
    return _clamp01(scorer(_correct_of(question), answer))


def is_full_credit(ratio: float) -> bool:
    return ratio >= FULL_CREDIT


def earned_points(question: Any, ratio: float) -> float:
    pts = getattr(question, "points", None)
    if pts is None and isinstance(question, dict):
        pts = question.get("points")
    try:
        p = float(pts) if pts is not None else 1.0
    except (TypeError, ValueError):
        p = 1.0
    return max(p, 0.0) * _clamp01(ratio)
