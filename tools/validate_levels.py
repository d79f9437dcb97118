from __future__ import annotations
from collections import defaultdict
import os, sys
from assess_core.errors import ValidationError
from assess_core.levels import iter_levels, load_catalog, required_correct, validate_topic
from assess_core.question_bank import effective_difficulty, load_bank

# Extra questions wanted per level beyond its quota, so variants actually differ
SPARE_MIN = int(os.getenv("TARGET_SPARE_MIN", 1))


def coverage(test_id: str, catalog=None, questions=None) -> list[dict]:
    catalog = catalog or load_catalog()
    questions = load_bank() if questions is None else questions
    by_topic = defaultdict(list)
    for q in questions:
        by_topic[q.topic_id].append(q)
    rows = []
    for topic in catalog.topics_for_test(test_id):
        for lvl in topic.levels:
            pool = [q for q in by_topic[topic.topic_id]
                    if lvl.min_difficulty <= effective_difficulty(q) <= lvl.max_difficulty]
            rows.append({
                "topicId": topic.topic_id,
                "levelIndex": lvl.level_index,
                "levelName": lvl.name,
                "band": (lvl.min_difficulty, lvl.max_difficulty),
                "quota": lvl.questions_count,
                "required": required_correct(lvl.pass_threshold, lvl.questions_count),
                "available": len(pool),
            })
    return rows


def main(argv=None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    catalog = load_catalog()
    questions = load_bank()
    failed = False
    for test_id in (argv or catalog.test_ids()):
        topics = catalog.topics_for_test(test_id)
        quota_total = sum(l.questions_count for l in iter_levels(topics))
        print(f"{test_id}: {len(topics)} topics, at most {quota_total} questions per attempt\n")
        for topic in topics:
            try:
                for w in validate_topic(topic, strict=False):
                    print(f"  ! {w}")
            except ValidationError as exc:
                print(f"  ✗ {exc}")
                failed = True
        for row in coverage(test_id, catalog, questions):
            lo, hi = row["band"]
            short = row["available"] < row["quota"]
            spare = row["available"] - row["quota"]
            mark = "✗ short" if short else ("✓" if spare >= SPARE_MIN else "~ no spare")
            print(f"  {row['topicId']:<14} L{row['levelIndex']} {row['levelName']:<10} [{lo:3d},{hi:3d}] "
                  f"quota {row['quota']:2d} need {row['required']:2d} pool {row['available']:2d}  {mark}")
            failed = failed or short
        print()
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
