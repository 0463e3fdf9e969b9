"""
models.py
======================

Plain data records shared across the app.

- Question: one entry of the fixed question bank
- EvaluationResult: the grader's verdict for one answer
- Attempt: one submitted answer and its verdict

The JSON keys (isCorrect, timestamp in epoch millis, ...) match the
history file format, so to_dict()/from_dict() are the storage codec.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Question:
    id: int
    chapter: str
    question: str
    answer: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Question":
        question = str(data["question"]).strip()
        answer = str(data["answer"]).strip()
        if not question or not answer:
            raise ValueError("question and answer must not be empty")
        return cls(
            id=int(data["id"]),
            chapter=str(data.get("chapter", "")).strip(),
            question=question,
            answer=answer,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "chapter": self.chapter,
            "question": self.question,
            "answer": self.answer,
        }


@dataclass(frozen=True)
class EvaluationResult:
    is_correct: bool
    score: float
    feedback: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EvaluationResult":
        """
        Build from the grader / history JSON shape.
        The score is clamped into 0..10.
        """
        score = float(data.get("score", 0))
        score = min(max(score, 0.0), 10.0)
        return cls(
            is_correct=bool(data.get("isCorrect", False)),
            score=score,
            feedback=str(data.get("feedback", "")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isCorrect": self.is_correct,
            "score": self.score,
            "feedback": self.feedback,
        }


@dataclass(frozen=True)
class Attempt:
    text: str
    timestamp: int  # epoch millis
    result: EvaluationResult

    @classmethod
    def create(
        cls,
        text: str,
        result: EvaluationResult,
        timestamp: Optional[int] = None,
    ) -> "Attempt":
        if timestamp is None:
            timestamp = now_millis()
        return cls(text=text, timestamp=int(timestamp), result=result)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Attempt":
        return cls(
            text=str(data.get("text", "")),
            timestamp=int(data.get("timestamp", 0)),
            result=EvaluationResult.from_dict(data.get("result", {})),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "timestamp": self.timestamp,
            "result": self.result.to_dict(),
        }


def now_millis() -> int:
    return int(time.time() * 1000)
