import types

import pytest

from therapy_quiz import ui


@pytest.fixture
def session_state(monkeypatch):
    fake_st = types.SimpleNamespace(session_state={})
    monkeypatch.setattr(ui, "st", fake_st)
    return fake_st.session_state


def test_submit_callback_passes_answer(session_state):
    received = []
    session_state["tq_answer_4"] = "Congruence and empathy"

    ui._submit_answer("tq_answer_4", received.append)

    assert received == ["Congruence and empathy"]
    assert "tq_blank_answer" not in session_state


@pytest.mark.parametrize("text", ["", "   \n", None])
def test_submit_callback_rejects_blank(session_state, text):
    received = []
    session_state["tq_answer_4"] = text

    ui._submit_answer("tq_answer_4", received.append)

    assert received == []
    assert session_state["tq_blank_answer"] is True
