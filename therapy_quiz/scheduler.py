"""
scheduler.py
======================

Question queue for one quiz session.

The queue starts as a shuffled copy of every bank id. A question the
learner wants to see again is reinserted a few places after the cursor
(or appended when that lands past the end), so it comes back later in the
same session. The session is complete once the cursor has passed the last
element of the queue, counting any reinserted copies.

State changes are pure functions from a Progress value to a new Progress
value; QueueScheduler just owns the current value and the RNG.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, Optional, Tuple

from .exceptions import EmptyQuestionBankError, SchedulerStateError

DEFAULT_REPEAT_OFFSETS: Tuple[int, int] = (3, 7)


class SessionStatus(str, Enum):
    IDLE = "idle"
    IN_SESSION = "in_session"
    COMPLETED = "completed"


@dataclass(frozen=True)
class Progress:
    queue: Tuple[int, ...] = ()
    cursor: int = 0
    correct_count: int = 0
    incorrect_count: int = 0
    status: SessionStatus = SessionStatus.IDLE


# ----------------------------------------------------------------------
#  Transitions
# ----------------------------------------------------------------------
def start_session(question_ids: Iterable[int], rng: random.Random) -> Progress:
    ids = list(question_ids)
    if not ids:
        raise EmptyQuestionBankError()
    rng.shuffle(ids)
    return Progress(queue=tuple(ids), status=SessionStatus.IN_SESSION)


def record_outcome(progress: Progress, is_correct: bool) -> Progress:
    if is_correct:
        return replace(progress, correct_count=progress.correct_count + 1)
    return replace(progress, incorrect_count=progress.incorrect_count + 1)


def advance(progress: Progress, should_repeat: bool, offset: int) -> Progress:
    """
    Move past the current question.

    With should_repeat, a copy of the current id goes to cursor + offset,
    or to the end when that index is outside the queue. Completion is
    checked against the queue length after that insertion.
    """
    if progress.status is not SessionStatus.IN_SESSION:
        raise SchedulerStateError(progress.status.value, "advance")

    queue = list(progress.queue)
    cursor = progress.cursor

    if should_repeat:
        qid = queue[cursor]
        target = cursor + offset
        if target < len(queue):
            queue.insert(target, qid)
        else:
            queue.append(qid)

    if cursor >= len(queue) - 1:
        return replace(progress, queue=tuple(queue), status=SessionStatus.COMPLETED)
    return replace(progress, queue=tuple(queue), cursor=cursor + 1)


# ----------------------------------------------------------------------
#  Controller
# ----------------------------------------------------------------------
@dataclass
class QueueScheduler:
    """
    Owns the session Progress for one learner.

    question_ids:
        every id of the question bank, in source order.
    repeat_offsets:
        inclusive (min, max) window for the reinsertion offset.
        (4, 4) gives a fixed offset.
    """

    question_ids: Tuple[int, ...]
    repeat_offsets: Tuple[int, int] = DEFAULT_REPEAT_OFFSETS
    rng: random.Random = field(default_factory=random.Random)
    progress: Progress = field(default_factory=Progress)

    def __post_init__(self):
        self.question_ids = tuple(self.question_ids)
        low, high = self.repeat_offsets
        if low < 1 or high < low:
            raise ValueError(f"Invalid repeat offset window: {self.repeat_offsets}")

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    def start(self) -> None:
        self.progress = start_session(self.question_ids, self.rng)

    def reset(self) -> None:
        self.start()

    def current_question_id(self) -> int:
        if self.progress.status is not SessionStatus.IN_SESSION:
            raise SchedulerStateError(self.progress.status.value, "current_question_id")
        return self.progress.queue[self.progress.cursor]

    def record_outcome(self, is_correct: bool) -> None:
        self.progress = record_outcome(self.progress, is_correct)

    def advance(self, should_repeat: bool = False) -> SessionStatus:
        offset = self._draw_offset() if should_repeat else 0
        self.progress = advance(self.progress, should_repeat, offset)
        return self.progress.status

    # ------------------------------------------------------------------
    # Derived signals
    # ------------------------------------------------------------------
    @property
    def status(self) -> SessionStatus:
        return self.progress.status

    @property
    def in_session(self) -> bool:
        return self.progress.status is SessionStatus.IN_SESSION

    @property
    def is_completed(self) -> bool:
        return self.progress.status is SessionStatus.COMPLETED

    @property
    def queue(self) -> Tuple[int, ...]:
        return self.progress.queue

    @property
    def cursor(self) -> int:
        return self.progress.cursor

    @property
    def correct_count(self) -> int:
        return self.progress.correct_count

    @property
    def incorrect_count(self) -> int:
        return self.progress.incorrect_count

    @property
    def position(self) -> int:
        """1-based position of the current question."""
        return self.progress.cursor + 1

    @property
    def total(self) -> int:
        return len(self.progress.queue)

    @property
    def progress_ratio(self) -> Optional[float]:
        """cursor / queue length; 1.0 once completed, None when idle."""
        if self.progress.status is SessionStatus.IDLE:
            return None
        if self.progress.status is SessionStatus.COMPLETED:
            return 1.0
        return self.progress.cursor / len(self.progress.queue)

    def _draw_offset(self) -> int:
        low, high = self.repeat_offsets
        return self.rng.randint(low, high)
