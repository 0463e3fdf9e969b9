import pytest

from therapy_quiz.models import Attempt, EvaluationResult, Question


def test_question_from_dict_strips_and_casts():
    q = Question.from_dict({"id": "4", "chapter": " Cognitive ", "question": " Q ", "answer": " A "})
    assert q == Question(id=4, chapter="Cognitive", question="Q", answer="A")
    assert q.to_dict()["id"] == 4


def test_question_requires_text():
    with pytest.raises(ValueError):
        Question.from_dict({"id": 1, "chapter": "x", "question": "  ", "answer": "a"})


def test_question_is_immutable():
    q = Question(1, "c", "q", "a")
    with pytest.raises(AttributeError):
        q.answer = "changed"


def test_attempt_create_stamps_millis():
    a = Attempt.create("text", EvaluationResult(True, 7, "ok"))
    assert a.timestamp > 1_600_000_000_000
    assert Attempt.from_dict(a.to_dict()) == a
