"""
history.py
=====================================

Durable per-question answer history.

data/history.json layout (question id as a string key):

{
  "12": [
    {
      "text": "the learner's answer",
      "timestamp": 1700000000000,
      "result": {"isCorrect": true, "score": 8, "feedback": "..."}
    }
  ]
}

Attempts are only ever appended, in chronological order. The whole file
is rewritten after every new attempt; the last successful write wins.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

from .config import AppConfig
from .models import Attempt, EvaluationResult

logger = logging.getLogger(__name__)


class HistoryStore:
    """
    Attempt history keyed by question id.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._attempts: Dict[int, List[Attempt]] = {}

    # ---------------------------------------------------------
    # Load / save
    # ---------------------------------------------------------
    def load(self) -> None:
        """
        Read the history file. A missing file is an empty history;
        an unreadable one is logged and also treated as empty.
        """
        self._attempts = {}

        try:
            raw = AppConfig.read_json(self.path)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Could not read history file %s: %s", self.path, e)
            return

        if raw is None:
            return
        if not isinstance(raw, dict):
            logger.error("History file %s does not contain an object", self.path)
            return

        for key, records in raw.items():
            try:
                qid = int(key)
            except ValueError:
                logger.warning("Skipping history entry with non-numeric id %r", key)
                continue
            if not isinstance(records, list):
                continue

            attempts = []
            for record in records:
                try:
                    attempts.append(Attempt.from_dict(record))
                except (TypeError, ValueError, AttributeError) as e:
                    logger.warning("Skipping broken attempt for question %d: %s", qid, e)
            self._attempts[qid] = attempts

    def save(self) -> None:
        data = {
            str(qid): [a.to_dict() for a in attempts]
            for qid, attempts in self._attempts.items()
        }
        AppConfig.write_json(self.path, data)

    # ---------------------------------------------------------
    # Append
    # ---------------------------------------------------------
    def add_attempt(
        self,
        question_id: int,
        text: str,
        result: EvaluationResult,
        timestamp: Optional[int] = None,
    ) -> Attempt:
        """Append one attempt and write the whole history back to disk."""
        attempt = Attempt.create(text=text, result=result, timestamp=timestamp)
        self._attempts.setdefault(question_id, []).append(attempt)
        self.save()
        return attempt

    # ---------------------------------------------------------
    # Queries
    # ---------------------------------------------------------
    def attempts_for(self, question_id: int) -> List[Attempt]:
        return list(self._attempts.get(question_id, []))

    def latest(self, question_id: int) -> Optional[Attempt]:
        attempts = self._attempts.get(question_id)
        return attempts[-1] if attempts else None

    def attempted_ids(self) -> List[int]:
        return sorted(qid for qid, attempts in self._attempts.items() if attempts)

    def wrong_question_ids(self) -> List[int]:
        """Questions whose most recent attempt was graded incorrect."""
        return [
            qid for qid in self.attempted_ids()
            if not self._attempts[qid][-1].result.is_correct
        ]

    def total_attempts(self) -> int:
        return sum(len(a) for a in self._attempts.values())

    def items(self):
        for qid in sorted(self._attempts):
            yield qid, list(self._attempts[qid])

    def __len__(self) -> int:
        return len(self.attempted_ids())
