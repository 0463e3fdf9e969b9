import json

from therapy_quiz.config import AppConfig
from therapy_quiz.history import HistoryStore
from therapy_quiz.models import EvaluationResult


def result(correct, score=8.0, feedback="ok"):
    return EvaluationResult(is_correct=correct, score=score, feedback=feedback)


def test_missing_file_is_empty(tmp_path):
    store = HistoryStore(tmp_path / "history.json")
    store.load()
    assert store.attempted_ids() == []
    assert store.total_attempts() == 0
    assert store.latest(1) is None


def test_add_attempt_writes_file_format(tmp_path):
    path = tmp_path / "data" / "history.json"
    store = HistoryStore(path)
    store.load()
    store.add_attempt(7, "my answer", result(True, 8.5, "good"), timestamp=1700000000000)

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data == {
        "7": [
            {
                "text": "my answer",
                "timestamp": 1700000000000,
                "result": {"isCorrect": True, "score": 8.5, "feedback": "good"},
            }
        ]
    }


def test_attempts_are_appended_in_order_and_survive_reload(tmp_path):
    path = tmp_path / "history.json"
    store = HistoryStore(path)
    store.add_attempt(1, "first", result(False, 3), timestamp=1)
    store.add_attempt(1, "second", result(True, 9), timestamp=2)
    store.add_attempt(2, "other", result(True), timestamp=3)

    reloaded = HistoryStore(path)
    reloaded.load()
    assert [a.text for a in reloaded.attempts_for(1)] == ["first", "second"]
    assert reloaded.latest(1).result.is_correct is True
    assert reloaded.attempted_ids() == [1, 2]
    assert reloaded.total_attempts() == 3
    assert len(reloaded) == 2


def test_wrong_question_ids_uses_latest_attempt(tmp_path):
    store = HistoryStore(tmp_path / "history.json")
    store.add_attempt(1, "a", result(False), timestamp=1)
    store.add_attempt(1, "b", result(True), timestamp=2)
    store.add_attempt(2, "c", result(True), timestamp=3)
    store.add_attempt(2, "d", result(False), timestamp=4)
    assert store.wrong_question_ids() == [2]


def test_attempts_for_returns_copy(tmp_path):
    store = HistoryStore(tmp_path / "history.json")
    store.add_attempt(1, "a", result(True), timestamp=1)
    store.attempts_for(1).clear()
    assert len(store.attempts_for(1)) == 1


def test_corrupt_file_is_treated_as_empty(tmp_path):
    path = tmp_path / "history.json"
    path.write_text("{broken", encoding="utf-8")
    store = HistoryStore(path)
    store.load()
    assert store.total_attempts() == 0


def test_broken_entries_are_skipped(tmp_path):
    path = tmp_path / "history.json"
    path.write_text(
        json.dumps(
            {
                "abc": [{"text": "x", "timestamp": 1, "result": {}}],
                "3": [
                    {"text": "fine", "timestamp": 5, "result": {"isCorrect": True, "score": 12, "feedback": "f"}},
                    "not a record",
                ],
            }
        ),
        encoding="utf-8",
    )
    store = HistoryStore(path)
    store.load()
    assert store.attempted_ids() == [3]
    attempt = store.latest(3)
    assert attempt.text == "fine"
    assert attempt.result.score == 10.0


def test_history_goes_through_config_json_helpers(tmp_path):
    path = tmp_path / "nested" / "history.json"
    store = HistoryStore(path)
    store.load()
    store.add_attempt(1, "انتقال احساسات", result(True), timestamp=1)

    assert "انتقال احساسات" in path.read_text(encoding="utf-8")
    assert AppConfig.read_json(path)["1"][0]["text"] == "انتقال احساسات"

    AppConfig.write_json(path, {"2": [{"text": "x", "timestamp": 2, "result": {"isCorrect": False, "score": 1, "feedback": ""}}]})
    store.load()
    assert store.attempted_ids() == [2]
