"""
Generation boundary: Gemini REST client and the generative analyzer.

`GeminiClient.generate` raises typed GenerationError subclasses.
`GenerativeAnalyzer` never raises: every failure (including a timeout) comes
back as an AnalyzerFailure, which downstream stages read as "no signal".
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

import httpx

from triagebot.services import prompts
from triagebot.utils.exceptions import (
    GenerationAuthError,
    GenerationEmptyResponse,
    GenerationError,
    GenerationQuotaError,
    GenerationTransportError,
)

logger = logging.getLogger("triagebot")

AI_TIMEOUT = "AI_TIMEOUT"


@dataclass(frozen=True)
class AnalyzerFailure:
    """A generation call that produced no usable text."""

    code: str
    detail: str = ""


AnalyzerResult = Union[str, AnalyzerFailure]


def _candidate_text(data: Dict[str, Any]) -> str:
    try:
        parts = data["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError):
        return ""
    return "".join(p.get("text", "") for p in parts if isinstance(p, dict)).strip()


def _classify_status_error(exc: httpx.HTTPStatusError) -> GenerationError:
    code = exc.response.status_code
    body = exc.response.text or ""
    if code in (401, 403) or "API_KEY" in body:
        return GenerationAuthError("AI service authentication failed", details={"status": code})
    if code == 429 or "quota" in body.lower():
        return GenerationQuotaError("AI service rate limit exceeded", details={"status": code})
    return GenerationTransportError(f"AI service returned HTTP {code}", details={"status": code})


class GeminiClient:
    """Thin async client for the Gemini generateContent endpoint.

    One instance (and one pooled httpx.AsyncClient) lives for the whole process.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout_s: float = 20.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.api_key = (api_key or "").strip()
        self.model = model
        self.base_url = base_url.rstrip("/")
        self._http = http_client or httpx.AsyncClient(timeout=timeout_s)

    @property
    def configured(self) -> bool:
        return bool(self.api_key) and self.api_key != "your-key"

    async def generate(self, prompt: str) -> str:
        if not self.configured:
            raise GenerationAuthError("GEMINI_API_KEY is not configured")

        url = f"{self.base_url}/models/{self.model}:generateContent"
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt.strip()}]}],
            "generationConfig": {"temperature": 0, "responseMimeType": "application/json"},
        }
        try:
            r = await self._http.post(
                url,
                params={"key": self.api_key},
                headers={"Content-Type": "application/json"},
                json=payload,
            )
            r.raise_for_status()
            data = r.json()
        except httpx.HTTPStatusError as e:
            raise _classify_status_error(e) from e
        except httpx.HTTPError as e:
            raise GenerationTransportError(f"AI transport error: {e.__class__.__name__}") from e
        except ValueError as e:
            raise GenerationEmptyResponse("AI service returned malformed JSON") from e

        text = _candidate_text(data if isinstance(data, dict) else {})
        if not text:
            raise GenerationEmptyResponse("AI service returned no text")
        return text

    async def aclose(self) -> None:
        await self._http.aclose()


class GenerativeAnalyzer:
    """Issues the symptom-analysis and emergency-assessment requests."""

    def __init__(self, client: GeminiClient, timeout_s: float = 20.0) -> None:
        self.client = client
        self.timeout_s = timeout_s

    async def analyze(self, symptoms: str, language: str) -> AnalyzerResult:
        return await self._call("symptom_analysis", prompts.analysis_prompt(symptoms, language))

    async def assess_emergency(self, symptoms: str, language: str) -> AnalyzerResult:
        return await self._call("emergency_assessment", prompts.assessment_prompt(symptoms, language))

    async def _call(self, operation: str, prompt: str) -> AnalyzerResult:
        try:
            text = await asyncio.wait_for(self.client.generate(prompt), timeout=self.timeout_s)
        except asyncio.TimeoutError:
            failure = AnalyzerFailure(AI_TIMEOUT, f"no response within {self.timeout_s}s")
        except GenerationError as e:
            failure = AnalyzerFailure(e.code, e.message)
        except Exception as e:
            failure = AnalyzerFailure("AI_UNKNOWN_ERROR", f"{e.__class__.__name__}: {e}")
        else:
            logger.info({"function": operation, "status": "ok", "chars": len(text)})
            return text

        logger.warning({
            "function": operation,
            "status": "failed",
            "code": failure.code,
            "detail": failure.detail,
        })
        return failure


__all__ = ["GeminiClient", "GenerativeAnalyzer", "AnalyzerFailure", "AnalyzerResult"]
