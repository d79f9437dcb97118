from __future__ import annotations
import json, os, sys
from assess_core.config import load_config, seed_rng
from assess_core.levels import load_catalog
from assess_core.offline import OfflineSession, build_bundle
from assess_core.question_bank import QuestionBank, load_bank


def parse_answer(qtype: str, raw: str):
    """Console input -> answer payload; returns None when the input is unusable."""
    parts = [p.strip() for p in raw.replace(";", ",").split(",") if p.strip()]
    try:
        if qtype == "single":
            return int(raw.strip())
        if qtype in ("multiple", "ranking"):
            return [int(p) for p in parts]
        if qtype == "matching":
            out = {}
            for p in parts:
                left, right = p.split("-", 1)
                out[str(int(left))] = int(right)
            return out
    except ValueError:
        return None
    return None


_HINTS = {
    "single": "index",
    "multiple": "indices, e.g. 0,2",
    "ranking": "item order, e.g. 2,0,1",
    "matching": "left-right pairs, e.g. 0-1,1-0",
}


def show(payload: dict) -> None:
    q = payload["question"]
    print(f"\n[{payload['topicName']} / {payload['levelName']} {payload['questionNumber']}/{payload['totalInLevel']}] {q['prompt']}")
    data = q.get("data") or {}
    for key in ("options", "items"):
        for i, opt in enumerate(data.get(key) or []): print(f"  [{i}] {opt}")
    if data.get("left"):
        for i, opt in enumerate(data["left"]): print(f"  L{i} {opt}")
        for i, opt in enumerate(data.get("right") or []): print(f"  R{i} {opt}")


def main(argv=None):
    argv = list(sys.argv[1:] if argv is None else argv)
    catalog = load_catalog(); bank = QuestionBank(load_bank())
    test_id = argv[0] if argv else catalog.test_ids()[0]
    session = OfflineSession(build_bundle(test_id, catalog, bank), rng=seed_rng(load_config()), learner_id="console")
    print(f"{session.title} (adaptive)")
    while not session.is_finished:
        payload = session.current_question()
        show(payload)
        qtype = payload["question"]["type"]
        answer = None
        while answer is None:
            answer = parse_answer(qtype, input(f"Your answer ({_HINTS.get(qtype, 'value')}): "))
            if answer is None: print("Could not read that answer, try again.")
        out = session.submit(payload["id"], answer)
        print(f"  score {out['score']:.2f}" + ("  (correct)" if out["isCorrect"] else ""))
        for tr in out["levelTransitions"]: print(f"  -> {tr['message']}")
        if out["topicTransition"]: print(f"  == next topic: {out['topicTransition']['toTopic']}")
    summary = session.lms_summary()
    print(f"\nDone. {summary['correct']}/{summary['totalQuestions']} correct, {summary['percent']:.0f}%, passed={summary['passed']}")
    for row in session.state.result["topicResults"]:
        print(f"  {row['topicName']}: {row['achievedLevelName'] or '-'}  {row['feedback'] or ''}")
    os.makedirs("reports", exist_ok=True)
    path = os.path.join("reports", f"attempt_{session.state.attempt_id}.json")
    with open(path, "w", encoding="utf-8") as f: json.dump(session.suspend_data(), f, indent=2)
    print(f"Attempt saved to: {path}")


if __name__ == "__main__": main()
