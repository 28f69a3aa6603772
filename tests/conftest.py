"""Shared fixtures for unit and integration tests."""

import sys
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient


def ensure_src_on_path() -> None:
    root = Path(__file__).resolve().parent.parent
    src_path = root / "src"
    if str(src_path) not in sys.path:
        sys.path.append(str(src_path))


ensure_src_on_path()

from config import settings
from models.schemas import AnalysisConfiguration


def make_response(status_code: int, payload=None, method: str = "POST", url: str = "https://llm.test/v1") -> httpx.Response:
    request = httpx.Request(method, url)
    if payload is None:
        return httpx.Response(status_code, request=request)
    return httpx.Response(status_code, json=payload, request=request)


def gemini_payload(text: str, prompt_tokens: int = 5, output_tokens: int = 7) -> dict:
    return {
        "candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}],
        "usageMetadata": {"promptTokenCount": prompt_tokens, "candidatesTokenCount": output_tokens},
    }


def chat_payload(content: str, prompt_tokens: int = 3, completion_tokens: int = 4, **extra) -> dict:
    message = {"role": "assistant", "content": content}
    message.update(extra.pop("message_extra", {}))
    payload = {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "created": 1700000000,
        "model": "test-model",
        "choices": [{"index": 0, "finish_reason": "stop", "message": message}],
        "usage": {
            "prompt_tokens": prompt_tokens,
            "completion_tokens": completion_tokens,
            "total_tokens": prompt_tokens + completion_tokens,
        },
    }
    payload.update(extra)
    return payload


@pytest.fixture(autouse=True)
def clear_env_api_keys(monkeypatch):
    """Keep keys from a developer's .env out of credential resolution."""
    monkeypatch.setattr(settings, "gemini_api_key", None)
    monkeypatch.setattr(settings, "openai_api_key", None)
    monkeypatch.setattr(settings, "perplexity_api_key", None)


@pytest.fixture
def make_config():
    def _make(**overrides) -> AnalysisConfiguration:
        data = {
            "providers": ["gemini"],
            "models": {"gemini": "gemini-2.5-flash"},
            "apiKeys": {"gemini": "g-key"},
            "clientName": "Travyk",
            "competitors": ["Acme"],
            "prompts": ["best travel apps"],
        }
        data.update(overrides)
        return AnalysisConfiguration.model_validate(data)

    return _make


@pytest.fixture
def client():
    from api import app

    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
