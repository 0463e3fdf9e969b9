import json
import os
import sys
import types

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from therapy_quiz import evaluator as evaluator_module
from therapy_quiz import gemini as gemini_module
from therapy_quiz import question_bank
from therapy_quiz.config import AppConfig
from therapy_quiz.models import Question


SAMPLE_QUESTIONS = [
    {"id": 1, "chapter": "Psychoanalytic", "question": "What is transference?", "answer": "Redirecting early feelings onto the therapist."},
    {"id": 2, "chapter": "Psychoanalytic", "question": "What is free association?", "answer": "Saying whatever comes to mind without censoring."},
    {"id": 3, "chapter": "Person-Centered", "question": "Name Rogers' core conditions.", "answer": "Congruence, unconditional positive regard and empathy."},
]


@pytest.fixture(autouse=True)
def _clear_bank_cache():
    question_bank.clear_cache()
    yield
    question_bank.clear_cache()


@pytest.fixture
def bank_path(tmp_path):
    path = tmp_path / "question_bank.jsonl"
    path.write_text("\n".join(json.dumps(q) for q in SAMPLE_QUESTIONS) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def questions():
    return [Question.from_dict(q) for q in SAMPLE_QUESTIONS]


@pytest.fixture
def config(tmp_path, bank_path):
    return AppConfig(
        gemini_api_key="test-key",
        evaluation_model="model-a",
        fallback_models=["model-b"],
        question_bank_path=bank_path,
        history_path=tmp_path / "data" / "history.json",
        usage_path=tmp_path / "data" / "usage.json",
    )


class FakeResponse:
    def __init__(self, text):
        self._text = text

    @property
    def text(self):
        if self._text is None:
            raise ValueError("response has no parts")
        return self._text


class FakeGenai:
    """
    Stands in for the google.generativeai module.

    behaviours maps a model name to either a reply text or an exception
    instance to raise from generate_content().
    """

    def __init__(self):
        self.behaviours = {}
        self.calls = []
        self.configured_key = None
        self.available = []

    def configure(self, api_key=None):
        self.configured_key = api_key

    def list_models(self):
        return [
            types.SimpleNamespace(name=f"models/{name}", supported_generation_methods=methods)
            for name, methods in self.available
        ]

    def GenerationConfig(self, **kwargs):
        return dict(kwargs)

    def GenerativeModel(self, model_name, generation_config=None):
        fake = self

        class _Model:
            def generate_content(self, prompt):
                fake.calls.append((model_name, prompt, generation_config))
                behaviour = fake.behaviours.get(model_name)
                if isinstance(behaviour, Exception):
                    raise behaviour
                return FakeResponse(behaviour)

        return _Model()


@pytest.fixture
def fake_genai(monkeypatch):
    fake = FakeGenai()
    monkeypatch.setattr(gemini_module, "genai", fake)
    monkeypatch.setattr(evaluator_module, "genai", fake)
    monkeypatch.setattr(gemini_module, "FAILOVER_PAUSE_SECONDS", 0)
    return fake
