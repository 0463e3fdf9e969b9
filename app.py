"""
app.py
======================

Therapy-Quiz (Streamlit) entry point.

Features:
- home / quiz / result / finished pages driven by QueueScheduler
- free-text answers graded by Gemini (AnswerEvaluator)
- "review again" reinserts the question a few places later in the queue
- per-question answer history persisted to data/history.json
- history review, per-chapter statistics and settings pages
- estimated quota meter (QuotaManager + ui.py)

Assumptions:
- bank/question_bank.jsonl holds the question bank
- GEMINI_API_KEY (or API_KEY) is set in the environment or a root .env
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

import streamlit as st

from therapy_quiz.config import AppConfig
from therapy_quiz.evaluator import AnswerEvaluator
from therapy_quiz.exceptions import EmptyQuestionBankError, EvaluationError, QuizError
from therapy_quiz.gemini import ModelManager
from therapy_quiz.history import HistoryStore
from therapy_quiz.models import EvaluationResult, Question
from therapy_quiz.question_bank import (
    get_all_questions,
    get_chapters,
    get_question_by_id,
    get_question_ids,
    get_questions_by_chapter,
    load_question_bank,
    search,
)
from therapy_quiz.quota import QuotaManager
from therapy_quiz.scheduler import QueueScheduler, SessionStatus
from therapy_quiz.stats import chapter_summary
from therapy_quiz.ui import (
    apply_theme,
    render_api_error,
    render_header,
    render_progress,
    render_question_block,
    render_result_block,
    render_theme_selector,
)

logger = logging.getLogger(__name__)


# ----------------------------------------------------------------------
#  Config / collaborators, kept in the Streamlit session
# ----------------------------------------------------------------------
def get_config() -> AppConfig:
    if "app_config" not in st.session_state:
        cfg = AppConfig.load()
        logging.basicConfig(
            level=getattr(logging, cfg.log_level, logging.INFO),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        st.session_state["app_config"] = cfg
    return st.session_state["app_config"]


def get_questions() -> Dict[int, Question]:
    return load_question_bank(get_config().question_bank_path)


def get_history() -> HistoryStore:
    if "history" not in st.session_state:
        store = HistoryStore(get_config().history_path)
        store.load()
        st.session_state["history"] = store
    return st.session_state["history"]


def get_quota() -> QuotaManager:
    if "quota" not in st.session_state:
        quota = QuotaManager(get_config().usage_path)
        quota.load()
        st.session_state["quota"] = quota
    return st.session_state["quota"]


def get_model_priority() -> List[str]:
    """Model chosen on the settings page first, then the configured order."""
    priority = get_config().model_failover_priority
    preferred = st.session_state.get("preferred_model")
    if isinstance(preferred, str) and preferred:
        priority = [preferred] + [m for m in priority if m != preferred]
    return priority


def get_evaluator() -> AnswerEvaluator:
    cfg = get_config()
    priority = get_model_priority()
    cached = st.session_state.get("evaluator")
    if cached is None or cached.models.model_priority != priority:
        cached = AnswerEvaluator(
            cfg,
            model_manager=ModelManager(cfg.gemini_api_key, priority),
            quota=get_quota(),
        )
        st.session_state["evaluator"] = cached
    return cached


def get_scheduler() -> QueueScheduler:
    if "scheduler" not in st.session_state:
        cfg = get_config()
        st.session_state["scheduler"] = QueueScheduler(
            question_ids=tuple(get_question_ids(cfg.question_bank_path)),
            repeat_offsets=(cfg.repeat_offset_min, cfg.repeat_offset_max),
        )
    return st.session_state["scheduler"]


def set_page(page: str) -> None:
    st.session_state["page"] = page


def get_page() -> str:
    return st.session_state.get("page", "home")


def clear_turn_state() -> None:
    st.session_state["last_result"] = None
    st.session_state["api_error"] = None


# ----------------------------------------------------------------------
#  Session actions
# ----------------------------------------------------------------------
def start_quiz() -> None:
    get_scheduler().start()
    clear_turn_state()
    set_page("quiz")


def queue_answer(answer: str) -> None:
    """
    Submit-button callback. Only stores the answer and raises the busy
    flag; grading happens in the script run that follows, while the form
    is drawn disabled.
    """
    st.session_state["pending_answer"] = answer
    st.session_state["evaluating"] = True
    st.session_state["api_error"] = None


def submit_answer(question: Question, answer: str) -> None:
    """
    Grade one answer. On success the attempt is stored, the outcome is
    counted and the result page is shown; on failure the error kind is
    kept for the banner and the learner stays on the question.
    """
    st.session_state["api_error"] = None
    st.session_state["evaluating"] = True
    try:
        with st.spinner("Grading your answer..."):
            result = get_evaluator().evaluate(question.question, question.answer, answer)
    except EvaluationError as e:
        st.session_state["api_error"] = e.kind
        return
    finally:
        st.session_state["evaluating"] = False
        st.session_state.pop("pending_answer", None)

    get_history().add_attempt(question.id, answer, result)
    get_scheduler().record_outcome(result.is_correct)
    st.session_state["last_result"] = result
    set_page("result")


def grade_pending_answer(question: Question) -> bool:
    """Grade the answer queued by the submit button, if any."""
    answer = st.session_state.get("pending_answer")
    if answer is None:
        st.session_state["evaluating"] = False
        return False
    submit_answer(question, answer)
    return True


def next_question(should_repeat: bool) -> None:
    status = get_scheduler().advance(should_repeat)
    clear_turn_state()
    set_page("finished" if status is SessionStatus.COMPLETED else "quiz")


def quota_warning() -> Optional[str]:
    """Banner text once the estimated quota use passes near_limit_ratio."""
    quota = get_quota()
    if not quota.is_near_limit(get_config().near_limit_ratio):
        return None
    remaining = quota.get_remaining_ratio() or 0.0
    return (
        f"Estimated Gemini quota is almost used up ({remaining:.0%} left). "
        "Grading may start failing with 429 errors."
    )


def history_question_ids(
    only_wrong: bool = False,
    chapter: Optional[str] = None,
    keyword: str = "",
) -> List[int]:
    """Attempted question ids, narrowed by last verdict, chapter and keyword."""
    bank_path = get_config().question_bank_path
    history = get_history()
    ids = history.wrong_question_ids() if only_wrong else history.attempted_ids()

    if chapter:
        in_chapter = {q.id for q in get_questions_by_chapter(chapter, bank_path)}
        ids = [qid for qid in ids if qid in in_chapter]
    if keyword.strip():
        matches = {q.id for q in search(keyword, bank_path)}
        ids = [qid for qid in ids if qid in matches]
    return ids


# ----------------------------------------------------------------------
#  Page: home
# ----------------------------------------------------------------------
def render_home_page() -> None:
    questions = get_questions()
    history = get_history()

    st.markdown("### ⭐ Welcome")
    st.write(
        f"This quiz covers **{len(questions)} questions** on the major systems of "
        "psychotherapy. Write your answer in your own words; Gemini compares it with "
        "the textbook answer and gives you a score and feedback."
    )
    st.write(f"- Questions attempted so far: **{len(history)}**")
    st.write(f"- Total attempts: **{history.total_attempts()}**")

    st.write("---")
    if st.button(f"🚀 Start the {len(questions)}-question challenge", type="primary", use_container_width=True):
        try:
            start_quiz()
        except EmptyQuestionBankError as e:
            logger.error("Cannot start a session: %s", e)
            st.error(e.message)
        else:
            st.rerun()

    col1, col2, col3 = st.columns(3)
    with col1:
        if st.button("🔁 Answer history", use_container_width=True):
            set_page("history")
            st.rerun()
    with col2:
        if st.button("📊 Statistics", use_container_width=True):
            set_page("stats")
            st.rerun()
    with col3:
        if st.button("⚙️ Settings", use_container_width=True):
            set_page("settings")
            st.rerun()


# ----------------------------------------------------------------------
#  Page: quiz / result
# ----------------------------------------------------------------------
def _current_question() -> Optional[Question]:
    scheduler = get_scheduler()
    if not scheduler.in_session:
        return None
    return get_question_by_id(scheduler.current_question_id(), get_config().question_bank_path)


def _render_session_progress() -> None:
    s = get_scheduler()
    render_progress(
        position=s.position,
        total=s.total,
        ratio=s.progress_ratio or 0.0,
        correct=s.correct_count,
        incorrect=s.incorrect_count,
    )


def render_quiz_page() -> None:
    question = _current_question()
    if question is None:
        set_page("home")
        st.rerun()
        return

    render_api_error(st.session_state.get("api_error"))

    render_question_block(
        question,
        on_submit=queue_answer,
        busy=st.session_state.get("evaluating", False),
    )
    if grade_pending_answer(question):
        st.rerun()

    _render_session_progress()
    _render_home_link()


def render_result_page() -> None:
    question = _current_question()
    result: Optional[EvaluationResult] = st.session_state.get("last_result")
    if question is None or result is None:
        set_page("quiz")
        st.rerun()
        return

    choice = render_result_block(question, result)
    if choice is not None:
        next_question(should_repeat=(choice == "repeat"))
        st.rerun()

    _render_session_progress()


# ----------------------------------------------------------------------
#  Page: finished
# ----------------------------------------------------------------------
def finished_summary(s: QueueScheduler) -> str:
    # The queue holds each bank question once plus one copy per review.
    distinct = len(set(s.queue))
    reviews = s.total - distinct
    text = f"You worked through all **{distinct}** questions"
    if reviews:
        text += f" plus **{reviews}** reviews"
    return text + f": **{s.correct_count}** correct and **{s.incorrect_count}** incorrect answers."


def render_finished_page() -> None:
    s = get_scheduler()
    st.balloons()
    st.markdown("### 🎉 Congratulations, you finished the course!")
    st.write(finished_summary(s))
    if st.button("Restart the quiz", type="primary", use_container_width=True):
        start_quiz()
        st.rerun()
    _render_home_link()


# ----------------------------------------------------------------------
#  Page: answer history
# ----------------------------------------------------------------------
def render_history_page() -> None:
    questions = get_questions()
    history = get_history()

    st.markdown("### 🔁 Answer history")

    col_chapter, col_search = st.columns(2)
    with col_chapter:
        chapter = st.selectbox(
            "Chapter",
            ["All chapters"] + get_chapters(get_config().question_bank_path),
        )
    with col_search:
        keyword = st.text_input("Search", placeholder="Keyword in question or answer")
    only_wrong = st.toggle("Only questions whose last answer was incorrect", value=False)

    ids = history_question_ids(
        only_wrong=only_wrong,
        chapter=None if chapter == "All chapters" else chapter,
        keyword=keyword,
    )

    if not ids:
        st.info("No matching answers recorded yet.")
    for qid in ids:
        q = questions.get(qid)
        if q is None:
            continue
        attempts = history.attempts_for(qid)
        latest = attempts[-1].result
        mark = "✅" if latest.is_correct else "❌"
        with st.expander(f"{mark} [{q.chapter}] {q.question[:60]} ({len(attempts)} attempts)"):
            st.markdown(f"**Reference answer:** {q.answer}")
            for a in reversed(attempts):
                when = datetime.fromtimestamp(a.timestamp / 1000, tz=timezone.utc)
                st.markdown(
                    f"- `{when:%Y-%m-%d %H:%M}` · **{a.result.score:g}/10** · {a.text}\n\n"
                    f"  _{a.result.feedback}_"
                )

    _render_home_link()


# ----------------------------------------------------------------------
#  Page: statistics
# ----------------------------------------------------------------------
def render_stats_page() -> None:
    st.markdown("### 📊 Statistics")

    df = chapter_summary(get_history(), get_all_questions(get_config().question_bank_path))
    if df.empty or int(df["attempts"].sum()) == 0:
        st.info("No statistics yet.")
    else:
        st.dataframe(
            df.rename(
                columns={
                    "chapter": "Chapter",
                    "questions": "Questions",
                    "attempted": "Attempted",
                    "attempts": "Attempts",
                    "correct_attempts": "Correct",
                    "accuracy": "Accuracy",
                    "mean_score": "Mean score",
                }
            ),
            use_container_width=True,
            hide_index=True,
        )

    _render_home_link()


# ----------------------------------------------------------------------
#  Page: settings
# ----------------------------------------------------------------------
def render_settings_page() -> None:
    cfg = get_config()
    st.markdown("### ⚙️ Settings")

    st.markdown("#### Theme")
    render_theme_selector()

    st.write("---")
    st.markdown("#### Evaluation model")
    if not cfg.has_api_key:
        st.info("Set GEMINI_API_KEY in the environment to grade answers.")
    else:
        models = get_evaluator().models.list_models()
        if not models:
            st.warning("Could not fetch the list of Gemini models.")
        else:
            priority = get_model_priority()
            idx = models.index(priority[0]) if priority and priority[0] in models else 0
            selected = st.selectbox("Preferred model", models, index=idx)
            st.session_state["preferred_model"] = selected
            st.write(f"Failover order: `{' → '.join(get_model_priority())}`")

    st.write("---")
    st.markdown("#### App info")
    st.write(f"- App name: **{cfg.app_name}**")
    st.write(f"- Pass score: **{cfg.pass_score:g}/10**")
    st.write(f"- Review reinsertion: **{cfg.repeat_offset_min}–{cfg.repeat_offset_max}** questions later")
    st.write(f"- Feedback language: **{cfg.feedback_language}**")

    _render_home_link()


def _render_home_link() -> None:
    if st.button("🏠 Back to home", key="tq_home", use_container_width=True):
        set_page("home")
        st.rerun()


# ----------------------------------------------------------------------
#  Main
# ----------------------------------------------------------------------
PAGES = {
    "home": render_home_page,
    "quiz": render_quiz_page,
    "result": render_result_page,
    "finished": render_finished_page,
    "history": render_history_page,
    "stats": render_stats_page,
    "settings": render_settings_page,
}


def main() -> None:
    st.set_page_config(page_title="Therapy-Quiz", page_icon="🧠", layout="centered")

    cfg = get_config()
    theme = apply_theme()

    try:
        get_questions()
        get_scheduler()
    except QuizError as e:
        logger.error("Cannot start: %s", e)
        st.error(str(e))
        st.stop()

    render_header(
        cfg.app_name,
        theme,
        quota_status=get_quota().get_status(),
        quota_warning=quota_warning(),
    )

    page = get_page()
    if page not in PAGES:
        page = "home"
        set_page(page)
    PAGES[page]()


if __name__ == "__main__":
    main()
