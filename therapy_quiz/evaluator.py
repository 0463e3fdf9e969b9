"""
evaluator.py
======================

Grades a free-text answer against the reference answer with Gemini.

evaluate() returns an EvaluationResult or raises one of:
- RateLimitedError        (429 / quota)
- UnauthenticatedError    (missing or rejected API key)
- EvaluatorUnavailableError (anything else, including unparsable output)
"""

from __future__ import annotations

import json
import logging
import math
from typing import Optional, TypedDict

import google.generativeai as genai

from .config import AppConfig
from .exceptions import EvaluationError, EvaluatorUnavailableError, RateLimitedError
from .gemini import ModelManager
from .models import EvaluationResult
from .quota import QuotaManager

logger = logging.getLogger(__name__)


class Verdict(TypedDict):
    """Response schema requested from the model."""
    isCorrect: bool
    score: float
    feedback: str


def build_evaluation_prompt(
    question: str,
    reference_answer: str,
    user_answer: str,
    pass_score: float = 7.0,
    feedback_language: str = "English",
) -> str:
    return f"""
Compare the user's answer to the reference answer for the psychotherapy question below.

Question: {question}
Reference Answer: {reference_answer}
User Answer: {user_answer}

Assess whether the user's answer is semantically correct and captures the core
concepts of the reference answer. Wording does not need to match.

Return a JSON object with:
- "score": a number from 0 to 10
- "isCorrect": true if the score is {pass_score:g} or above, otherwise false
- "feedback": brief constructive feedback in {feedback_language}
"""


def parse_verdict(text: str) -> EvaluationResult:
    """Parse the model's JSON reply; raise EvaluatorUnavailableError if malformed."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise EvaluatorUnavailableError(f"Model returned invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise EvaluatorUnavailableError("Model returned a non-object JSON value")

    missing = [k for k in ("isCorrect", "score", "feedback") if k not in data]
    if missing:
        raise EvaluatorUnavailableError(f"Model reply is missing fields: {', '.join(missing)}")

    if not isinstance(data["isCorrect"], bool):
        raise EvaluatorUnavailableError(f"isCorrect is not a boolean: {data['isCorrect']!r}")
    score = data["score"]
    if isinstance(score, bool) or not isinstance(score, (int, float)) or not math.isfinite(score):
        raise EvaluatorUnavailableError(f"score is not a finite number: {score!r}")

    try:
        return EvaluationResult.from_dict(data)
    except (TypeError, ValueError) as e:
        raise EvaluatorUnavailableError(f"Model reply has invalid values: {e}") from e


class AnswerEvaluator:
    """
    Gemini-backed grader.

    quota is optional; when given, estimated token usage and 429s are
    recorded there.
    """

    def __init__(
        self,
        config: AppConfig,
        model_manager: Optional[ModelManager] = None,
        quota: Optional[QuotaManager] = None,
    ):
        self.config = config
        self.models = model_manager or ModelManager(
            config.gemini_api_key, config.model_failover_priority
        )
        self.quota = quota

    def evaluate(self, question: str, reference_answer: str, user_answer: str) -> EvaluationResult:
        prompt = build_evaluation_prompt(
            question,
            reference_answer,
            user_answer,
            pass_score=self.config.pass_score,
            feedback_language=self.config.feedback_language,
        )
        generation_config = genai.GenerationConfig(
            response_mime_type="application/json",
            response_schema=Verdict,
        )

        try:
            model_name, text = self.models.generate(prompt, generation_config=generation_config)
            result = parse_verdict(text)
        except EvaluationError as e:
            logger.error("Answer evaluation failed (%s): %s", e.kind, e)
            self._record_failure(e)
            raise

        if self.quota is not None:
            self.quota.add_usage(len(prompt) // 4 + len(text) // 4)
            self.quota.save()

        logger.info(
            "Evaluated answer with %s: score=%s correct=%s",
            model_name, result.score, result.is_correct,
        )
        return result

    def _record_failure(self, error: EvaluationError) -> None:
        if self.quota is None:
            return
        if isinstance(error, RateLimitedError):
            self.quota.register_429(message=error.message)
        else:
            self.quota.register_error(error.message)
        self.quota.save()
