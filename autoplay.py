# autoplay.py
from __future__ import annotations
import argparse, os, json, random, datetime
from typing import Any, Dict, Optional
from assess_core.audit_export import to_csv
from assess_core.levels import load_catalog
from assess_core.offline import OfflineSession, build_bundle
from assess_core.question_bank import QuestionBank, load_bank
from assess_core.types import Question

PROFILES = ("perfect", "all-wrong", "half", "random")


def _correct_answer(q: Question) -> Any:
    c = q.correct or {}
    if q.type == "single": return c.get("correctIndex", 0)
    if q.type == "multiple": return list(c.get("correctIndices") or [])
    if q.type == "matching": return {str(p["left"]): p["right"] for p in c.get("pairs") or []}
    return list(c.get("correctOrder") or [])


def _wrong_answer(q: Question) -> Any:
    n = len((q.data or {}).get("options") or []) or 4
    if q.type == "single": return (int((q.correct or {}).get("correctIndex", 0)) + 1) % n
    if q.type == "multiple":
        keys = set((q.correct or {}).get("correctIndices") or [])
        return [i for i in range(n) if i not in keys] or [0]
    if q.type == "matching": return {}
    order = list((q.correct or {}).get("correctOrder") or [])
    return order[1:] + order[:1] if len(order) > 1 else order


def _half_answer(q: Question) -> Any:
    # single-choice has no partial credit; others get roughly half of the key
    good = _correct_answer(q)
    if q.type == "single": return _wrong_answer(q)
    if q.type == "multiple": return good[: max(1, len(good) // 2)]
    if q.type == "matching": return dict(list(good.items())[: max(1, len(good) // 2)])
    if len(good) > 1: good[0], good[1] = good[1], good[0]
    return good


def answer_for(q: Question, profile: str, rnd: random.Random) -> Any:
    if profile == "perfect": return _correct_answer(q)
    if profile == "all-wrong": return _wrong_answer(q)
    if profile == "half": return _half_answer(q)
    return _correct_answer(q) if rnd.random() < 0.5 else _wrong_answer(q)


def run(test_id: Optional[str], profile: str, seed: Optional[int], out_dir: str = "reports") -> Dict[str, Any]:
    catalog = load_catalog(); bank = QuestionBank(load_bank())
    test_id = test_id or catalog.test_ids()[0]
    rnd = random.Random(seed or 1234)
    sess = OfflineSession(build_bundle(test_id, catalog, bank), rng=random.Random(seed or 1234), learner_id=f"auto-{profile}")

    answered = 0
    while not sess.is_finished:
        where = sess.current_question()
        q = bank.get(where["id"])
        sess.submit(q.id, answer_for(q, profile, rnd)); answered += 1
    if answered <= 0: raise RuntimeError("Driver answered 0 questions.")

    state = sess.suspend_data()
    ts = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
    os.makedirs(out_dir, exist_ok=True)
    base = os.path.join(out_dir, f"auto_{test_id}_{profile}_{ts}")
    with open(base + ".json", "w", encoding="utf-8") as f:
        json.dump({"result": state["result"], "lms": sess.lms_summary()}, f, indent=2)
    with open(base + "_trajectory.csv", "w", encoding="utf-8", newline="") as f:
        f.write(to_csv(state["trajectory"]))
    print(f"Report: {base}.json ({answered} answers)")
    return state["result"]


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--test", default=None)
    ap.add_argument("--profile", choices=list(PROFILES), default="perfect")
    ap.add_argument("--seed", type=int, default=1337)
    ap.add_argument("--out", default="reports")
    a = ap.parse_args()
    run(a.test, a.profile, a.seed, a.out)

if __name__ == "__main__":
    main()
