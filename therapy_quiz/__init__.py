"""
therapy_quiz package
======================

Internal logic for the psychotherapy review quiz.

Main parts:
- settings (config)
- question bank loading (question_bank)
- session queue scheduling (scheduler)
- Gemini model failover and answer grading (gemini, evaluator)
- answer history and statistics (history, stats)
- estimated quota meter (quota)
- UI components (ui)

app.py only does the Streamlit wiring and calls into this package.
"""

from .config import AppConfig
from .evaluator import AnswerEvaluator
from .exceptions import (
    EmptyQuestionBankError,
    EvaluationError,
    EvaluatorUnavailableError,
    QuestionBankError,
    QuizError,
    RateLimitedError,
    SchedulerStateError,
    UnauthenticatedError,
)
from .gemini import ModelManager
from .history import HistoryStore
from .models import Attempt, EvaluationResult, Question
from .question_bank import load_question_bank
from .quota import QuotaManager
from .scheduler import Progress, QueueScheduler, SessionStatus

__all__ = [
    "AppConfig",
    "AnswerEvaluator",
    "ModelManager",
    "HistoryStore",
    "QuotaManager",
    "QueueScheduler",
    "Progress",
    "SessionStatus",
    "Question",
    "EvaluationResult",
    "Attempt",
    "load_question_bank",
    "QuizError",
    "QuestionBankError",
    "EmptyQuestionBankError",
    "SchedulerStateError",
    "EvaluationError",
    "RateLimitedError",
    "UnauthenticatedError",
    "EvaluatorUnavailableError",
]
