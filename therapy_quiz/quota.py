"""
quota.py
======================

Estimated quota meter for the Gemini API.

Stored as data/usage.json:

{
  "updated_at": "1970-01-01T00:00:00Z",
  "total_used_tokens": 0,
  "estimated_limit_tokens": null,
  "last_429_at": null,
  "last_error": null
}

What it does:
- add an approximate token count for every evaluation call
- when a 429 (Resource Exhausted) is seen, take the usage at that moment
  as the new estimated limit
- the more the app is used, the better the estimate gets
- the UI can ask how close to the limit we are
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, Optional

from .config import AppConfig

logger = logging.getLogger(__name__)


class QuotaManager:
    """
    Wraps the usage.json dict. Call load() once, then save() after changes.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path is not None else None
        self._q: Dict[str, Any] = {}
        self._ensure_structure()

    # ------------------------------------------------------------------
    # Load / save
    # ------------------------------------------------------------------
    def load(self) -> None:
        """Read usage.json. A missing or broken file starts from zero."""
        self._q = {}
        if self.path is not None and self.path.exists():
            try:
                data = AppConfig.read_json(self.path)
                if isinstance(data, dict):
                    self._q = data
            except (OSError, json.JSONDecodeError) as e:
                logger.error("Could not read usage file %s: %s", self.path, e)
        self._ensure_structure()

    def save(self) -> None:
        if self.path is None:
            return
        self._q["updated_at"] = _now_iso()
        AppConfig.write_json(self.path, self._q)

    def _ensure_structure(self) -> None:
        q = self._q
        q.setdefault("total_used_tokens", 0)
        q.setdefault("estimated_limit_tokens", None)
        q.setdefault("last_429_at", None)
        q.setdefault("last_error", None)

    # ------------------------------------------------------------------
    # Usage
    # ------------------------------------------------------------------
    def add_usage(self, used_tokens: int) -> None:
        """
        Add an estimated token count.
        Prompt length + response length is close enough.
        """
        if used_tokens < 0:
            used_tokens = 0
        self._q["total_used_tokens"] += used_tokens

    # ------------------------------------------------------------------
    # 429 handling
    # ------------------------------------------------------------------
    def register_429(self, message: Optional[str] = None) -> None:
        """
        Record a 429 (Resource Exhausted).

        - last_429_at becomes now (UTC)
        - last_error keeps the message
        - estimated_limit_tokens becomes the current usage when that is
          larger than the previous estimate
        """
        self._q["last_429_at"] = _now_iso()
        if message:
            self._q["last_error"] = message

        total = self._q.get("total_used_tokens", 0)
        limit = self._q.get("estimated_limit_tokens")

        if limit is None or (isinstance(limit, (int, float)) and total > limit):
            self._q["estimated_limit_tokens"] = total

    def register_error(self, message: str) -> None:
        self._q["last_error"] = message

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------
    def get_status(self) -> Dict[str, Any]:
        return {
            "total_used_tokens": self._q.get("total_used_tokens", 0),
            "estimated_limit_tokens": self._q.get("estimated_limit_tokens"),
            "last_429_at": self._q.get("last_429_at"),
            "last_error": self._q.get("last_error"),
        }

    def get_remaining_ratio(self) -> Optional[float]:
        """
        Remaining quota as 0.0..1.0, or None while the limit is unknown.
        """
        limit = self._q.get("estimated_limit_tokens")
        total = self._q.get("total_used_tokens", 0)

        if not isinstance(limit, (int, float)) or limit <= 0:
            return None

        remaining = max(limit - total, 0)
        return remaining / float(limit)

    def is_near_limit(self, threshold: float = 0.9) -> bool:
        """True once used / estimated limit reaches threshold."""
        limit = self._q.get("estimated_limit_tokens")
        total = self._q.get("total_used_tokens", 0)

        if not isinstance(limit, (int, float)) or limit <= 0:
            return False

        return total / float(limit) >= threshold


def _now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())
