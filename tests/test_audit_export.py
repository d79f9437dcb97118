from __future__ import annotations

import csv
import io

from assess_core.audit_export import to_csv, to_json


EVENTS = [
    {"t": "2024-01-01T00:00:00+00:00", "action": "start", "topicId": "python", "topicName": "Python",
     "levelIndex": 1, "levelName": "Medium"},
    {"t": "2024-01-01T00:00:05+00:00", "action": "answer", "topicId": "python", "topicName": "Python",
     "levelIndex": 1, "levelName": "Medium", "questionId": "py-m2", "isCorrect": False, "score": 0.5},
    {"t": "2024-01-01T00:01:00+00:00", "action": "topic_complete", "topicId": "python",
     "levelIndex": 1, "message": 'Topic complete. Achieved level: "Medium".', "finalLevelIndex": 1},
    {"t": "2024-01-01T00:01:00+00:00", "action": "test_complete", "reason": "completed"},
]


def test_json_export_normalizes_fields():
    events = to_json(EVENTS)["events"]
    assert len(events) == 4
    assert events[1]["score"] == 0.5
    assert events[1]["isCorrect"] is False
    assert events[0]["questionId"] == ""
    assert events[3]["levelIndex"] == ""
    assert "finalLevelIndex" not in events[2]


def test_csv_export_has_fixed_header_and_quotes_messages():
    body = to_csv(EVENTS)
    rows = list(csv.reader(io.StringIO(body)))
    assert rows[0] == [
        "t", "action", "topicId", "topicName", "levelIndex",
        "levelName", "questionId", "isCorrect", "score", "message",
    ]
    assert len(rows) == len(EVENTS) + 1
    assert rows[3][-1] == 'Topic complete. Achieved level: "Medium".'


def test_empty_trajectory_exports_header_only():
    assert to_json([]) == {"events": []}
    assert to_csv([]).strip().splitlines() == [
        "t,action,topicId,topicName,levelIndex,levelName,questionId,isCorrect,score,message"
    ]
