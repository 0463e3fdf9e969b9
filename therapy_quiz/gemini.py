"""
gemini.py
======================

Model management for the Google Gemini API.

- list the models that support generateContent
- call the configured models in priority order, failing over on
  transient API errors
- classify failures into rate-limit / auth / generic errors so the UI
  can react to each one differently
"""

from __future__ import annotations

import logging
import time
from typing import Any, List, Optional, Sequence, Tuple

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from .exceptions import (
    EvaluationError,
    EvaluatorUnavailableError,
    RateLimitedError,
    UnauthenticatedError,
)

logger = logging.getLogger(__name__)

FAILOVER_PAUSE_SECONDS = 0.3


def classify_error(error: Exception, model_name: Optional[str] = None) -> EvaluationError:
    """
    Map an SDK / transport exception onto the evaluation error hierarchy.
    Typed google.api_core errors are checked first, then the message text.
    """
    msg = str(error)
    lowered = msg.lower()

    if isinstance(error, google_exceptions.ResourceExhausted):
        return RateLimitedError(msg, model_name=model_name)
    if isinstance(error, (google_exceptions.Unauthenticated, google_exceptions.PermissionDenied)):
        return UnauthenticatedError(msg, model_name=model_name)

    if "429" in lowered or "quota" in lowered or "resource exhausted" in lowered:
        return RateLimitedError(msg, model_name=model_name)
    if "api_key" in lowered or "api key" in lowered or "401" in lowered or "403" in lowered:
        return UnauthenticatedError(msg, model_name=model_name)

    return EvaluatorUnavailableError(msg, model_name=model_name)


class ModelManager:
    """
    Gemini model manager.

    - list_models(): models usable with generateContent
    - generate(): call with failover across model_priority
    """

    def __init__(self, api_key: str, model_priority: Sequence[str]):
        self.api_key = api_key
        self.model_priority: List[str] = [m for m in model_priority if m]
        self._cached_models: List[str] = []
        self.last_model: Optional[str] = None
        if api_key:
            genai.configure(api_key=api_key)

    # ------------------------------------------------------------
    # Model listing
    # ------------------------------------------------------------
    def list_models(self) -> List[str]:
        """
        Names of the models that support generateContent, newest first.
        The "models/" prefix is stripped. Returns [] when listing fails.
        """
        if not self.api_key:
            return []

        try:
            response = genai.list_models()
            models = []
            for m in response:
                if "generateContent" in getattr(m, "supported_generation_methods", []):
                    models.append(m.name.replace("models/", "", 1))
        except google_exceptions.GoogleAPIError as e:
            logger.warning("Could not list Gemini models: %s", e)
            return self._cached_models

        if models:
            self._cached_models = sorted(models, reverse=True)

        return self._cached_models

    # ------------------------------------------------------------
    # generate() with failover
    # ------------------------------------------------------------
    def generate(self, prompt: str, generation_config: Any = None) -> Tuple[str, str]:
        """
        Try each model in model_priority and return (model_name, text).

        Rate-limit and auth errors stop immediately since another model
        will not fix them. Anything else moves on to the next model; when
        every model fails, EvaluatorUnavailableError is raised.
        """
        if not self.api_key:
            raise UnauthenticatedError("No Gemini API key configured")
        if not self.model_priority:
            raise EvaluatorUnavailableError("No Gemini model configured")

        last_error: Optional[EvaluationError] = None

        for model_name in self.model_priority:
            try:
                model = genai.GenerativeModel(model_name, generation_config=generation_config)
                response = model.generate_content(prompt)
                text = (response.text or "").strip()
            except ValueError as e:
                # response.text raises ValueError when no candidate was returned
                last_error = EvaluatorUnavailableError(f"Empty response: {e}", model_name=model_name)
            except Exception as e:
                last_error = classify_error(e, model_name=model_name)
                if not isinstance(last_error, EvaluatorUnavailableError):
                    raise last_error from e
            else:
                if text:
                    self.last_model = model_name
                    return model_name, text
                last_error = EvaluatorUnavailableError("Empty response from model", model_name=model_name)

            logger.warning("Model %s failed (%s); trying next model", model_name, last_error)
            time.sleep(FAILOVER_PAUSE_SECONDS)

        raise EvaluatorUnavailableError(
            f"All models failed. Last error: {last_error}",
            model_name=last_error.model_name if last_error else None,
        )
