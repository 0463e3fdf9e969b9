import json

import pytest

from therapy_quiz import question_bank
from therapy_quiz.exceptions import QuestionBankError


def test_load_returns_questions_by_id(bank_path):
    bank = question_bank.load_question_bank(bank_path)
    assert list(bank.keys()) == [1, 2, 3]
    assert bank[3].chapter == "Person-Centered"
    assert bank[1].question == "What is transference?"


def test_broken_and_blank_lines_are_skipped(tmp_path):
    path = tmp_path / "bank.jsonl"
    path.write_text(
        "\n".join(
            [
                json.dumps({"id": 2, "chapter": "B", "question": "Q2", "answer": "A2"}),
                "",
                "{not json",
                json.dumps({"id": 3, "chapter": "B", "question": "", "answer": "A3"}),
                json.dumps({"chapter": "B", "question": "no id", "answer": "x"}),
                json.dumps({"id": 1, "chapter": "A", "question": "Q1", "answer": "A1"}),
                json.dumps({"id": 1, "chapter": "A", "question": "dup", "answer": "dup"}),
            ]
        ),
        encoding="utf-8",
    )
    bank = question_bank.load_question_bank(path)
    assert list(bank.keys()) == [1, 2]
    assert bank[1].question == "Q1"


def test_missing_bank_raises(tmp_path):
    with pytest.raises(QuestionBankError):
        question_bank.load_question_bank(tmp_path / "missing.jsonl")


def test_cache_until_force_reload(bank_path):
    first = question_bank.load_question_bank(bank_path)
    bank_path.write_text(
        json.dumps({"id": 9, "chapter": "C", "question": "Q9", "answer": "A9"}) + "\n",
        encoding="utf-8",
    )
    assert question_bank.load_question_bank(bank_path) is first
    reloaded = question_bank.load_question_bank(bank_path, force_reload=True)
    assert list(reloaded.keys()) == [9]


def test_helpers(bank_path):
    assert question_bank.get_question_ids(bank_path) == [1, 2, 3]
    assert question_bank.get_question_by_id(2, bank_path).answer.startswith("Saying")
    assert question_bank.get_question_by_id(99, bank_path) is None
    assert [q.id for q in question_bank.get_questions_by_chapter("Psychoanalytic", bank_path)] == [1, 2]
    assert question_bank.get_chapters(bank_path) == ["Psychoanalytic", "Person-Centered"]


def test_search(bank_path):
    assert [q.id for q in question_bank.search("ROGERS", bank_path)] == [3]
    assert [q.id for q in question_bank.search("therapist", bank_path)] == [1]
    assert question_bank.search("   ", bank_path) == []


def test_shipped_bank_loads():
    bank = question_bank.load_question_bank()
    assert len(bank) >= 10
    assert all(q.question and q.answer and q.chapter for q in bank.values())
