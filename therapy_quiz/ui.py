"""
ui.py
======================

Streamlit UI components.

Responsibilities:
- layout and styling (mobile Safari is the main target)
- question screen (chapter tag, prompt, answer box, submit)
- result screen (score, feedback, reference answer, repeat / next)
- session progress bar and estimated quota meter
- API error banners

Only looks and user input live here. Scheduling, grading and history
writes are done by app.py; each render_* function just reports what the
user clicked.
"""

from __future__ import annotations

from html import escape
from typing import Any, Callable, Dict, Optional

import streamlit as st

from .models import EvaluationResult, Question

# ----------------------------------------------------------------------
#  Themes
# ----------------------------------------------------------------------
THEMES: Dict[str, Dict[str, str]] = {
    "light": {
        "bg": "#f8fafc",
        "text": "#0f172a",
        "surface": "#eef2ff",
        "surface_alt": "#ffffff",
        "border": "#cbd5e1",
        "primary": "#4f46e5",
        "correct": "#10b981",
        "incorrect": "#f43f5e",
    },
    "dark": {
        "bg": "#0b1120",
        "text": "#f1f5f9",
        "surface": "#1e293b",
        "surface_alt": "#111827",
        "border": "#334155",
        "primary": "#818cf8",
        "correct": "#34d399",
        "incorrect": "#fb7185",
    },
}

API_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "quota": {
        "title": "API quota exhausted",
        "body": "Gemini returned 429 (Resource exhausted). Wait a moment and submit again, "
                "or switch to a key with more quota.",
    },
    "key_missing": {
        "title": "API key error",
        "body": "No valid API key was found. Set the GEMINI_API_KEY environment variable "
                "(or add it to a .env file in the project root) and restart the app.",
    },
    "general": {
        "title": "Evaluation failed",
        "body": "Something went wrong while grading your answer. Please try again.",
    },
}


# ----------------------------------------------------------------------
#  CSS
# ----------------------------------------------------------------------
def _generate_css(theme: Dict[str, str]) -> str:
    """Global CSS for the given theme."""

    return f"""
    <style>
    html, body {{
        background: {theme['bg']};
        color: {theme['text']};
        -webkit-text-size-adjust: 100%;
        touch-action: manipulation;
    }}

    .tq-chapter {{
        display: inline-block;
        padding: 0.15rem 0.7rem;
        border-radius: 999px;
        background: {theme['surface']};
        border: 1px solid {theme['border']};
        color: {theme['primary']};
        font-size: 0.8rem;
        font-weight: 700;
    }}

    .tq-question {{
        font-size: 1.35rem;
        font-weight: 800;
        line-height: 1.5;
        margin: 0.75rem 0 1rem 0;
    }}

    .tq-verdict {{
        padding: 1.2rem;
        border-radius: 16px;
        text-align: center;
        border: 2px solid;
        margin-bottom: 1rem;
    }}

    .tq-verdict-correct {{
        background: {theme['correct']}22;
        border-color: {theme['correct']};
    }}

    .tq-verdict-incorrect {{
        background: {theme['incorrect']}22;
        border-color: {theme['incorrect']};
    }}

    .tq-score {{
        font-size: 2.5rem;
        font-weight: 900;
    }}

    .tq-reference {{
        padding: 1rem;
        border-radius: 16px;
        background: {theme['surface_alt']};
        border: 1px solid {theme['border']};
        line-height: 1.7;
    }}

    .tq-meter {{
        display: flex;
        align-items: center;
        gap: 0.5rem;
        font-size: 0.75rem;
        margin-top: 0.25rem;
    }}

    .tq-meter-label {{
        white-space: nowrap;
    }}

    .tq-meter-bar {{
        flex: 1;
        height: 8px;
        background: {theme['border']}55;
        border-radius: 4px;
        overflow: hidden;
    }}

    .tq-meter-fill {{
        height: 8px;
        background: {theme['primary']};
        border-radius: 4px;
    }}
    </style>
    """


# ----------------------------------------------------------------------
#  Theme handling
# ----------------------------------------------------------------------
def _ensure_theme() -> str:
    theme_key = st.session_state.get("theme", "light")
    if theme_key not in THEMES:
        theme_key = "light"
    st.session_state["theme"] = theme_key
    return theme_key


def apply_theme() -> Dict[str, str]:
    """Inject the CSS for the current theme and return the theme dict."""
    theme = THEMES[_ensure_theme()]
    st.markdown(_generate_css(theme), unsafe_allow_html=True)
    return theme


def render_theme_selector() -> str:
    options = list(THEMES.keys())
    current = _ensure_theme()
    selected = st.radio(
        "Theme",
        options,
        index=options.index(current),
        horizontal=True,
        format_func=str.capitalize,
    )
    st.session_state["theme"] = selected
    return selected


# ----------------------------------------------------------------------
#  Header / footer
# ----------------------------------------------------------------------
def render_header(
    app_name: str,
    theme: Dict[str, str],
    quota_status: Optional[Dict[str, Any]] = None,
    quota_warning: Optional[str] = None,
) -> None:
    st.markdown(f"## 🧠 {escape(app_name)}")
    st.caption("Free-text review of the major systems of psychotherapy, graded by Gemini.")
    if quota_status is not None:
        _render_quota_meter(theme, quota_status)
    if quota_warning:
        st.warning(quota_warning, icon="⚠️")


def render_api_error(kind: Optional[str]) -> None:
    if not kind:
        return
    msg = API_ERROR_MESSAGES.get(kind, API_ERROR_MESSAGES["general"])
    st.error(f"**{msg['title']}**\n\n{msg['body']}")


# ----------------------------------------------------------------------
#  Progress
# ----------------------------------------------------------------------
def render_progress(position: int, total: int, ratio: float, correct: int, incorrect: int) -> None:
    """Session progress: bar plus 'n of N' and the running tally."""
    ratio = min(max(ratio, 0.0), 1.0)
    col_bar, col_pos = st.columns([3, 1])
    with col_bar:
        st.progress(ratio, text=f"Progress {int(round(ratio * 100))}%")
    with col_pos:
        st.metric("Question", f"{position} / {total}")
    st.caption(f"✅ {correct} correct · ❌ {incorrect} incorrect")


# ----------------------------------------------------------------------
#  Question screen
# ----------------------------------------------------------------------
def _submit_answer(answer_key: str, on_submit: Callable[[str], None]) -> None:
    """Form callback; runs before the next script run draws the page."""
    answer = st.session_state.get(answer_key) or ""
    if not answer.strip():
        st.session_state["tq_blank_answer"] = True
        return
    on_submit(answer)


def render_question_block(
    question: Question,
    on_submit: Callable[[str], None],
    *,
    busy: bool = False,
) -> None:
    """
    Draw the question with an answer box.

    on_submit is called with the answer text when the form is submitted.
    It runs as the button's on_click callback, so whatever state it sets
    (e.g. busy) is already visible when the page is drawn again. Blank
    answers are not passed on; a warning is shown instead.
    """
    st.markdown(
        f"<span class='tq-chapter'>{escape(question.chapter)}</span>",
        unsafe_allow_html=True,
    )
    st.markdown(
        f"<div class='tq-question'>{escape(question.question)}</div>",
        unsafe_allow_html=True,
    )

    answer_key = f"tq_answer_{question.id}"
    with st.form(key=f"tq_answer_form_{question.id}", clear_on_submit=False):
        st.text_area(
            "Your answer",
            key=answer_key,
            height=220,
            placeholder="Write your full answer here...",
            disabled=busy,
        )
        st.form_submit_button(
            "Grading..." if busy else "Submit for grading",
            use_container_width=True,
            disabled=busy,
            on_click=_submit_answer,
            args=(answer_key, on_submit),
        )

    if st.session_state.pop("tq_blank_answer", False):
        st.warning("Write an answer before submitting.")


# ----------------------------------------------------------------------
#  Result screen
# ----------------------------------------------------------------------
def render_result_block(question: Question, result: EvaluationResult) -> Optional[str]:
    """
    Draw the verdict and the reference answer.

    Returns "repeat", "next" or None depending on the button pressed.
    """
    css = "tq-verdict-correct" if result.is_correct else "tq-verdict-incorrect"
    st.markdown(
        f"<div class='tq-verdict {css}'>"
        f"<div class='tq-score'>{result.score:g}/10</div>"
        f"<div>{escape(result.feedback)}</div>"
        "</div>",
        unsafe_allow_html=True,
    )

    st.markdown("**Reference answer**")
    st.markdown(
        f"<div class='tq-reference'>{escape(question.answer)}</div>",
        unsafe_allow_html=True,
    )
    st.write("")

    col_repeat, col_next = st.columns(2)
    with col_repeat:
        if st.button("🔁 Review this question again", key="tq_repeat", use_container_width=True):
            return "repeat"
    with col_next:
        if st.button("Next question ▶", key="tq_next", type="primary", use_container_width=True):
            return "next"
    return None


# ----------------------------------------------------------------------
#  Quota meter
# ----------------------------------------------------------------------
def _render_quota_meter(theme: Dict[str, str], quota_status: Dict[str, Any]) -> None:
    """Estimated quota meter."""

    total = int(quota_status.get("total_used_tokens", 0))
    limit = quota_status.get("estimated_limit_tokens")
    last_429_at = quota_status.get("last_429_at")

    if isinstance(limit, (int, float)) and limit > 0:
        percent = int(max(min(total / float(limit), 1.0), 0.0) * 100)
        label_text = f"Estimated quota {total}/{int(limit)} tokens"
    else:
        percent = 0
        label_text = f"Estimated quota: learning ({total} tokens used)"

    if last_429_at:
        label_text += f" · last 429: {last_429_at}"

    html = (
        "<div class='tq-meter'>"
        f"<div class='tq-meter-label'>{escape(label_text)}</div>"
        "<div class='tq-meter-bar'>"
        f"<div class='tq-meter-fill' style='width:{percent}%'></div>"
        "</div>"
        "</div>"
    )
    st.markdown(html, unsafe_allow_html=True)
