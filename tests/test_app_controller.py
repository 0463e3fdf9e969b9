import contextlib
import dataclasses
import json
import types

import pytest
from google.api_core import exceptions as google_exceptions

import app
from therapy_quiz.models import EvaluationResult
from therapy_quiz.scheduler import SessionStatus


def verdict(correct=True, score=8, feedback="Well done"):
    return json.dumps({"isCorrect": correct, "score": score, "feedback": feedback})


@pytest.fixture
def session(monkeypatch, config, fake_genai):
    """Stand-in for streamlit: a plain dict as session_state and a no-op spinner."""
    fake_st = types.SimpleNamespace(
        session_state={"app_config": config},
        spinner=lambda *args, **kwargs: contextlib.nullcontext(),
    )
    monkeypatch.setattr(app, "st", fake_st)
    return fake_st.session_state


def test_start_quiz_opens_a_session(session):
    app.start_quiz()

    scheduler = app.get_scheduler()
    assert scheduler.in_session
    assert sorted(scheduler.queue) == [1, 2, 3]
    assert app.get_page() == "quiz"
    assert session["last_result"] is None
    assert session["api_error"] is None


def test_queued_answer_is_graded_on_next_run(session, fake_genai, config):
    fake_genai.behaviours["model-a"] = verdict(True, 9, "Spot on")
    app.start_quiz()
    qid = app.get_scheduler().current_question_id()

    app.queue_answer("Feelings moved onto the therapist")
    assert session["evaluating"] is True
    assert session["pending_answer"] == "Feelings moved onto the therapist"

    question = app._current_question()
    assert app.grade_pending_answer(question) is True

    assert session["evaluating"] is False
    assert "pending_answer" not in session
    assert app.get_page() == "result"
    assert session["last_result"].score == 9.0
    assert app.get_scheduler().correct_count == 1
    assert app.get_history().latest(qid).text == "Feelings moved onto the therapist"
    assert config.history_path.exists()


def test_failed_grading_stays_on_question(session, fake_genai, config):
    fake_genai.behaviours["model-a"] = google_exceptions.ResourceExhausted("429 quota exceeded")
    app.start_quiz()

    app.queue_answer("an answer")
    app.grade_pending_answer(app._current_question())

    assert session["api_error"] == "quota"
    assert session["evaluating"] is False
    assert "pending_answer" not in session
    assert app.get_page() == "quiz"
    assert app.get_history().total_attempts() == 0
    assert app.get_scheduler().correct_count == 0
    assert app.get_scheduler().incorrect_count == 0


def test_nothing_pending_clears_busy_flag(session):
    app.start_quiz()
    session["evaluating"] = True

    assert app.grade_pending_answer(app._current_question()) is False
    assert session["evaluating"] is False


def test_next_question_routes_to_finished(session):
    app.start_quiz()

    app.next_question(should_repeat=True)
    assert app.get_page() == "quiz"
    assert app.get_scheduler().total == 4

    for _ in range(2):
        app.next_question(should_repeat=False)
        assert app.get_page() == "quiz"

    app.next_question(should_repeat=False)
    assert app.get_page() == "finished"
    assert app.get_scheduler().status is SessionStatus.COMPLETED


def test_finished_summary_counts_distinct_questions(session):
    app.start_quiz()
    scheduler = app.get_scheduler()
    scheduler.record_outcome(False)
    app.next_question(should_repeat=True)
    for _ in range(3):
        scheduler.record_outcome(True)
        app.next_question(should_repeat=False)

    text = app.finished_summary(scheduler)
    assert "all **3** questions" in text
    assert "**1** reviews" in text
    assert "**3** correct" in text
    assert "**1** incorrect" in text


def test_finished_summary_without_reviews(session):
    app.start_quiz()
    for _ in range(3):
        app.next_question(should_repeat=False)

    text = app.finished_summary(app.get_scheduler())
    assert "all **3** questions:" in text
    assert "reviews" not in text


def test_single_question_bank_finishes_after_one(session, config, tmp_path):
    bank = tmp_path / "one.jsonl"
    bank.write_text(
        json.dumps({"id": 5, "chapter": "CBT", "question": "What is a schema?", "answer": "A core belief."}) + "\n",
        encoding="utf-8",
    )
    session["app_config"] = dataclasses.replace(config, question_bank_path=bank)

    app.start_quiz()
    assert app.get_scheduler().current_question_id() == 5
    app.next_question(should_repeat=False)
    assert app.get_page() == "finished"


def test_quota_warning_near_limit(session, config):
    assert app.quota_warning() is None

    config.usage_path.parent.mkdir(parents=True)
    config.usage_path.write_text(
        json.dumps({"total_used_tokens": 950, "estimated_limit_tokens": 1000}),
        encoding="utf-8",
    )
    session.pop("quota")

    warning = app.quota_warning()
    assert warning is not None
    assert "5% left" in warning


def test_quota_warning_respects_configured_ratio(session, config):
    config.usage_path.parent.mkdir(parents=True)
    config.usage_path.write_text(
        json.dumps({"total_used_tokens": 800, "estimated_limit_tokens": 1000}),
        encoding="utf-8",
    )
    assert app.quota_warning() is None

    session["app_config"] = dataclasses.replace(config, near_limit_ratio=0.75)
    assert "20% left" in app.quota_warning()


def test_history_filters(session):
    history = app.get_history()
    history.add_attempt(1, "feelings redirected", EvaluationResult(True, 8.0, "good"))
    history.add_attempt(3, "warmth", EvaluationResult(False, 3.0, "missing congruence"))

    assert app.history_question_ids() == [1, 3]
    assert app.history_question_ids(only_wrong=True) == [3]
    assert app.history_question_ids(chapter="Psychoanalytic") == [1]
    assert app.history_question_ids(keyword="ROGERS") == [3]
    assert app.history_question_ids(chapter="Psychoanalytic", keyword="rogers") == []
