import asyncio

import httpx
import pytest

from triagebot.services.gemini import AnalyzerFailure, GeminiClient, GenerativeAnalyzer
from triagebot.utils.exceptions import (
    GenerationAuthError,
    GenerationEmptyResponse,
    GenerationQuotaError,
    GenerationTransportError,
)


def _client(handler):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GeminiClient(api_key="test-key", model="gemini-test", http_client=http)


def _candidate(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def test_generate_returns_candidate_text():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = request.read().decode()
        return httpx.Response(200, json=_candidate('{"ok": true}'))

    text = asyncio.run(_client(handler).generate("analyze this"))
    assert text == '{"ok": true}'
    assert "models/gemini-test:generateContent" in seen["url"]
    assert "key=test-key" in seen["url"]
    assert '"temperature": 0' in seen["body"] or '"temperature":0' in seen["body"]


@pytest.mark.parametrize(
    "status, body, expected",
    [
        (401, "unauthorized", GenerationAuthError),
        (400, "API_KEY_INVALID", GenerationAuthError),
        (429, "slow down", GenerationQuotaError),
        (500, "server error", GenerationTransportError),
    ],
)
def test_http_errors_are_typed(status, body, expected):
    client = _client(lambda request: httpx.Response(status, text=body))
    with pytest.raises(expected):
        asyncio.run(client.generate("x"))


def test_empty_candidates_raise_empty_response():
    client = _client(lambda request: httpx.Response(200, json={"candidates": []}))
    with pytest.raises(GenerationEmptyResponse):
        asyncio.run(client.generate("x"))


def test_unconfigured_key_fails_without_request():
    def handler(request):
        raise AssertionError("no request expected")

    client = GeminiClient(api_key="", http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    assert not client.configured
    with pytest.raises(GenerationAuthError):
        asyncio.run(client.generate("x"))


def test_analyzer_turns_errors_into_failures():
    analyzer = GenerativeAnalyzer(_client(lambda request: httpx.Response(429, text="quota")), timeout_s=5.0)
    result = asyncio.run(analyzer.analyze("cough", "EN"))
    assert isinstance(result, AnalyzerFailure)
    assert result.code == "AI_QUOTA_ERROR"


def test_analyzer_timeout_is_a_failure():
    class SlowClient:
        async def generate(self, prompt):
            await asyncio.sleep(1.0)
            return "late"

    analyzer = GenerativeAnalyzer(SlowClient(), timeout_s=0.01)
    result = asyncio.run(analyzer.assess_emergency("cough", "EN"))
    assert result == AnalyzerFailure("AI_TIMEOUT", result.detail)


def test_analyzer_uses_language_prompt():
    prompts = []

    def handler(request):
        prompts.append(request.read().decode("utf-8"))
        return httpx.Response(200, json=_candidate("{}"))

    analyzer = GenerativeAnalyzer(_client(handler), timeout_s=5.0)
    asyncio.run(analyzer.analyze("জ্বর", "BN"))
    assert "জ্বর" in prompts[0] or "\\u099c" in prompts[0]
