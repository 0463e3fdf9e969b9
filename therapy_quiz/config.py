"""
config.py
=========

Central place for every setting the app uses.
Gemini API access, file paths, model failover and quiz tuning are all
read through this class.

Defaults live on the dataclass; a root config.toml can override them.
The API key is only ever read from the environment or a root .env file.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import toml

logger = logging.getLogger(__name__)


# ------------------------------------------------------------
# Base paths
# ------------------------------------------------------------

ROOT_DIR = Path(__file__).resolve().parent.parent
BANK_DIR = ROOT_DIR / "bank"
DATA_DIR = ROOT_DIR / "data"
CONFIG_PATH = ROOT_DIR / "config.toml"

API_KEY_ENV_VARS = ("GEMINI_API_KEY", "API_KEY")


# ------------------------------------------------------------
# AppConfig
# ------------------------------------------------------------

@dataclass
class AppConfig:
    """
    Application settings.

    - API key lookup
    - question bank / history / usage paths
    - evaluation model and failover order
    - pass score and repeat offset window
    """

    # ---------- App ----------
    app_name: str = "Therapy-Quiz"
    log_level: str = "INFO"
    feedback_language: str = "English"

    # ---------- API ----------
    gemini_api_key: str = ""
    evaluation_model: str = "gemini-2.0-flash"
    fallback_models: List[str] = field(
        default_factory=lambda: ["gemini-1.5-flash", "gemini-1.5-pro"]
    )

    # ---------- File paths ----------
    question_bank_path: Path = BANK_DIR / "question_bank.jsonl"
    history_path: Path = DATA_DIR / "history.json"
    usage_path: Path = DATA_DIR / "usage.json"

    # ---------- Quiz ----------
    pass_score: float = 7.0
    repeat_offset_min: int = 3
    repeat_offset_max: int = 7

    # ---------- Quota ----------
    near_limit_ratio: float = 0.9

    # ============================================================
    # Initialization
    # ============================================================

    def __post_init__(self):
        if not self.gemini_api_key:
            self.gemini_api_key = self._load_api_key()

        self.question_bank_path = Path(self.question_bank_path)
        self.history_path = Path(self.history_path)
        self.usage_path = Path(self.usage_path)

        if self.repeat_offset_min < 1:
            raise ValueError("repeat_offset_min must be at least 1")
        if self.repeat_offset_max < self.repeat_offset_min:
            raise ValueError("repeat_offset_max must not be smaller than repeat_offset_min")
        if not 0 <= self.pass_score <= 10:
            raise ValueError("pass_score must be between 0 and 10")

    @property
    def has_api_key(self) -> bool:
        return bool(self.gemini_api_key)

    @property
    def model_failover_priority(self) -> List[str]:
        """Evaluation model first, then fallbacks, without duplicates."""
        ordered: List[str] = []
        for name in [self.evaluation_model, *self.fallback_models]:
            if name and name not in ordered:
                ordered.append(name)
        return ordered

    # ============================================================
    # Loading
    # ============================================================

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "AppConfig":
        """
        Build an AppConfig from config.toml.
        A missing or unreadable file falls back to defaults.
        """
        path = Path(path) if path is not None else CONFIG_PATH
        data: Dict[str, Any] = {}

        if path.exists():
            try:
                data = toml.load(path)
            except (toml.TomlDecodeError, OSError) as e:
                logger.warning("Ignoring unreadable config %s: %s", path, e)
                data = {}

        return cls(**cls._flatten(data, base_dir=path.parent))

    @staticmethod
    def _flatten(data: Dict[str, Any], base_dir: Path) -> Dict[str, Any]:
        """Map config.toml sections onto AppConfig field names."""
        kwargs: Dict[str, Any] = {}

        app = data.get("app", {})
        if isinstance(app, dict):
            if "name" in app:
                kwargs["app_name"] = str(app["name"])
            if "log_level" in app:
                kwargs["log_level"] = str(app["log_level"]).upper()
            if "feedback_language" in app:
                kwargs["feedback_language"] = str(app["feedback_language"])

        paths = data.get("paths", {})
        if isinstance(paths, dict):
            for key, attr in (
                ("question_bank", "question_bank_path"),
                ("history", "history_path"),
                ("usage", "usage_path"),
            ):
                if key in paths:
                    p = Path(paths[key])
                    kwargs[attr] = p if p.is_absolute() else base_dir / p

        gemini = data.get("gemini", {})
        if isinstance(gemini, dict):
            if "evaluation_model" in gemini:
                kwargs["evaluation_model"] = str(gemini["evaluation_model"])
            if isinstance(gemini.get("fallback_models"), list):
                kwargs["fallback_models"] = [str(m) for m in gemini["fallback_models"]]

        quiz = data.get("quiz", {})
        if isinstance(quiz, dict):
            if "pass_score" in quiz:
                kwargs["pass_score"] = float(quiz["pass_score"])
            if "repeat_offset_min" in quiz:
                kwargs["repeat_offset_min"] = int(quiz["repeat_offset_min"])
            if "repeat_offset_max" in quiz:
                kwargs["repeat_offset_max"] = int(quiz["repeat_offset_max"])

        quota = data.get("quota", {})
        if isinstance(quota, dict) and "near_limit_ratio" in quota:
            kwargs["near_limit_ratio"] = float(quota["near_limit_ratio"])

        return kwargs

    # ============================================================
    # Internal
    # ============================================================

    def _load_api_key(self) -> str:
        """
        GEMINI_API_KEY (or API_KEY) from the environment,
        then from a root .env file for local development.
        """
        for name in API_KEY_ENV_VARS:
            key = os.environ.get(name)
            if key:
                return key

        env_path = ROOT_DIR / ".env"
        if env_path.exists():
            for line in env_path.read_text(encoding="utf-8").splitlines():
                for name in API_KEY_ENV_VARS:
                    if line.startswith(f"{name}="):
                        return line.split("=", 1)[1].strip()

        return ""  # no key -> evaluation reports key_missing

    # ============================================================
    # JSON helpers
    # ============================================================

    @staticmethod
    def read_json(path: Path):
        if not path.exists():
            return None
        return json.loads(path.read_text(encoding="utf-8"))

    @staticmethod
    def write_json(path: Path, data: dict):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
