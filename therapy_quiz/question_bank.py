"""
question_bank.py
===========================

Loads the JSONL question bank and provides lookup helpers.

Goals:
- the bank is read once per process and then treated as read-only
- broken lines are skipped instead of failing the whole load
- questions come back in source order (ascending id)
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

from .config import BANK_DIR
from .exceptions import QuestionBankError
from .models import Question

logger = logging.getLogger(__name__)

# ----------------------------------------------------------------------
#  Process-wide cache, keyed by resolved bank path
# ----------------------------------------------------------------------
_QUESTION_CACHE: Dict[Path, Dict[int, Question]] = {}

# ----------------------------------------------------------------------
#  Paths
# ----------------------------------------------------------------------
BANK_PATH = BANK_DIR / "question_bank.jsonl"


# ----------------------------------------------------------------------
#  JSONL loading
# ----------------------------------------------------------------------
def load_question_bank(
    path: Optional[Path] = None,
    force_reload: bool = False,
) -> Dict[int, Question]:
    """
    Read question_bank.jsonl and return a dict of Question keyed by id.

    - only re-reads the file when force_reload=True
    - broken lines are skipped with a warning
    - on duplicate ids the first occurrence wins
    """
    bank_path = Path(path or BANK_PATH).resolve()

    if bank_path in _QUESTION_CACHE and not force_reload:
        return _QUESTION_CACHE[bank_path]

    if not bank_path.exists():
        raise QuestionBankError(f"Question bank not found: {bank_path}")

    loaded: Dict[int, Question] = {}

    with bank_path.open("r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue

            try:
                q = Question.from_dict(json.loads(line))
            except (ValueError, KeyError, TypeError) as e:
                logger.warning("Skipping broken line %d in %s: %s", lineno, bank_path, e)
                continue

            if q.id in loaded:
                logger.warning("Duplicate question id %d on line %d ignored", q.id, lineno)
                continue
            loaded[q.id] = q

    cache = {qid: loaded[qid] for qid in sorted(loaded)}
    _QUESTION_CACHE[bank_path] = cache
    logger.info("Loaded %d questions from %s", len(cache), bank_path)
    return cache


def clear_cache() -> None:
    _QUESTION_CACHE.clear()


# ----------------------------------------------------------------------
#  Simple helpers
# ----------------------------------------------------------------------
def get_all_questions(path: Optional[Path] = None) -> List[Question]:
    """All questions, in source order."""
    return list(load_question_bank(path).values())


def get_question_ids(path: Optional[Path] = None) -> List[int]:
    return list(load_question_bank(path).keys())


def get_question_by_id(qid: int, path: Optional[Path] = None) -> Optional[Question]:
    """Look up one question by id."""
    return load_question_bank(path).get(qid)


def get_questions_by_chapter(chapter: str, path: Optional[Path] = None) -> List[Question]:
    """Exact match on the chapter label."""
    return [q for q in load_question_bank(path).values() if q.chapter == chapter]


def get_chapters(path: Optional[Path] = None) -> List[str]:
    """Chapter labels in the order they first appear in the bank."""
    chapters: List[str] = []
    for q in load_question_bank(path).values():
        if q.chapter not in chapters:
            chapters.append(q.chapter)
    return chapters


# ----------------------------------------------------------------------
#  Search: plain substring match
# ----------------------------------------------------------------------
def search(keyword: str, path: Optional[Path] = None) -> List[Question]:
    """
    Case-insensitive substring search over question, answer and chapter.
    """
    keyword = keyword.strip()
    if not keyword:
        return []

    keyword_lower = keyword.lower()

    results = []
    for q in load_question_bank(path).values():
        parts = (q.question.lower(), q.answer.lower(), q.chapter.lower())
        if any(keyword_lower in part for part in parts):
            results.append(q)

    return results
