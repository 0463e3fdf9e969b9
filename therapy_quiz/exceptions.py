class QuizError(Exception):
    """Base exception for the therapy_quiz package."""
    pass


class QuestionBankError(QuizError):
    """Raised when the question bank file cannot be read."""
    pass


class EmptyQuestionBankError(QuizError):
    """Raised when a session is started on an empty question bank."""
    def __init__(self, message: str = "The question bank is empty"):
        self.message = message
        super().__init__(message)


class SchedulerStateError(QuizError):
    """Raised when a scheduler operation is called outside an active session."""
    def __init__(self, state: str, operation: str):
        self.state = state
        self.operation = operation
        self.message = f"Cannot call {operation}() while scheduler is {state}"
        super().__init__(self.message)


class EvaluationError(QuizError):
    """Base class for answer evaluation failures.

    `kind` is the short code the UI uses to pick a message:
    "quota", "key_missing" or "general".
    """
    kind = "general"

    def __init__(self, message: str = "Evaluation failed", model_name: str = None):
        self.message = message
        self.model_name = model_name
        super().__init__(message)


class RateLimitedError(EvaluationError):
    """Raised on HTTP 429 / quota exhaustion."""
    kind = "quota"


class UnauthenticatedError(EvaluationError):
    """Raised when the API key is missing, invalid or not permitted."""
    kind = "key_missing"


class EvaluatorUnavailableError(EvaluationError):
    """Raised for every other API failure, including malformed output."""
    kind = "general"
