"""
stats.py
======================

pandas views over the answer history for the statistics page.
"""

from __future__ import annotations

from typing import Iterable

import pandas as pd

from .history import HistoryStore
from .models import Question

ATTEMPT_COLUMNS = ["question_id", "chapter", "timestamp", "score", "is_correct"]
CHAPTER_COLUMNS = [
    "chapter",
    "questions",
    "attempted",
    "attempts",
    "correct_attempts",
    "accuracy",
    "mean_score",
]


def attempts_frame(history: HistoryStore, questions: Iterable[Question]) -> pd.DataFrame:
    """One row per attempt. Attempts for ids not in the bank are dropped."""
    chapters = {q.id: q.chapter for q in questions}

    rows = []
    for qid, attempts in history.items():
        if qid not in chapters:
            continue
        for a in attempts:
            rows.append(
                {
                    "question_id": qid,
                    "chapter": chapters[qid],
                    "timestamp": pd.to_datetime(a.timestamp, unit="ms", utc=True),
                    "score": a.result.score,
                    "is_correct": a.result.is_correct,
                }
            )

    return pd.DataFrame(rows, columns=ATTEMPT_COLUMNS)


def chapter_summary(history: HistoryStore, questions: Iterable[Question]) -> pd.DataFrame:
    """
    Per-chapter totals, in bank order.

    accuracy is correct_attempts / attempts (NaN with no attempts);
    mean_score likewise.
    """
    questions = list(questions)
    bank = pd.DataFrame(
        [{"question_id": q.id, "chapter": q.chapter} for q in questions],
        columns=["question_id", "chapter"],
    )
    if bank.empty:
        return pd.DataFrame(columns=CHAPTER_COLUMNS)

    chapter_order = list(dict.fromkeys(bank["chapter"]))
    summary = bank.groupby("chapter", sort=False).agg(questions=("question_id", "count"))

    attempts = attempts_frame(history, questions)
    if attempts.empty:
        summary["attempted"] = 0
        summary["attempts"] = 0
        summary["correct_attempts"] = 0
        summary["accuracy"] = float("nan")
        summary["mean_score"] = float("nan")
    else:
        grouped = attempts.groupby("chapter").agg(
            attempted=("question_id", "nunique"),
            attempts=("question_id", "count"),
            correct_attempts=("is_correct", "sum"),
            mean_score=("score", "mean"),
        )
        summary = summary.join(grouped, how="left")
        for col in ("attempted", "attempts", "correct_attempts"):
            summary[col] = summary[col].fillna(0).astype(int)
        summary["accuracy"] = summary["correct_attempts"] / summary["attempts"].where(
            summary["attempts"] > 0
        )

    summary = summary.reindex(chapter_order).rename_axis("chapter").reset_index()
    return summary[CHAPTER_COLUMNS]
