"""Minimal Gemini ``generateContent`` client over httpx."""

from __future__ import annotations

import base64
import os
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import httpx

from cofrinho.domain.models import ChatSource
from cofrinho.runtime.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_API_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_TIMEOUT = 60.0

GOOGLE_SEARCH_TOOL: dict[str, Any] = {"google_search": {}}


class AIServiceUnavailable(RuntimeError):
    """Raised when the Gemini API cannot be reached or returns an error."""


@dataclass(frozen=True)
class GeminiConfig:
    api_key: str = ""
    model: str = DEFAULT_MODEL
    api_url: str = DEFAULT_API_URL
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_env(cls) -> GeminiConfig:
        timeout_raw = os.environ.get("GEMINI_TIMEOUT", "").strip()
        try:
            timeout = float(timeout_raw) if timeout_raw else DEFAULT_TIMEOUT
        except ValueError:
            logger.warning("Ignoring invalid GEMINI_TIMEOUT=%r", timeout_raw)
            timeout = DEFAULT_TIMEOUT
        return cls(
            api_key=os.environ.get("GEMINI_API_KEY", "").strip(),
            model=os.environ.get("GEMINI_MODEL", "").strip() or DEFAULT_MODEL,
            api_url=os.environ.get("GEMINI_API_URL", "").strip() or DEFAULT_API_URL,
            timeout=timeout,
        )


@dataclass(frozen=True)
class GeminiResponse:
    text: str
    sources: list[ChatSource] = field(default_factory=list)


def inline_part(data: bytes, mime_type: str) -> dict[str, Any]:
    return {"inlineData": {"mimeType": mime_type, "data": base64.b64encode(data).decode("ascii")}}


def text_part(text: str) -> dict[str, Any]:
    return {"text": text}


def _response_text(payload: dict[str, Any]) -> str:
    candidates = payload.get("candidates") or []
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(part.get("text", "") for part in parts if isinstance(part, dict))


def grounding_sources(payload: dict[str, Any]) -> list[ChatSource]:
    """Web citations of the first candidate, deduplicated by uri."""
    candidates = payload.get("candidates") or []
    if not candidates:
        return []
    chunks = (candidates[0].get("groundingMetadata") or {}).get("groundingChunks") or []

    sources: list[ChatSource] = []
    seen: set[str] = set()
    for chunk in chunks:
        web = chunk.get("web") if isinstance(chunk, dict) else None
        if not web or not web.get("uri") or not web.get("title"):
            continue
        if web["uri"] in seen:
            continue
        seen.add(web["uri"])
        sources.append(ChatSource(title=web["title"], uri=web["uri"]))
    return sources


class GeminiClient:
    """Async client for one model. Pass ``transport`` to stub the network in tests."""

    def __init__(self, config: GeminiConfig | None = None, *, transport: httpx.AsyncBaseTransport | None = None):
        self.config = config or GeminiConfig.from_env()
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return f"{self.config.api_url.rstrip('/')}/models/{self.config.model}:generateContent"

    async def generate(
        self,
        contents: Sequence[dict[str, Any]],
        *,
        system_instruction: str | None = None,
        response_schema: dict[str, Any] | None = None,
        tools: Sequence[dict[str, Any]] | None = None,
    ) -> GeminiResponse:
        if not self.config.api_key:
            raise AIServiceUnavailable("GEMINI_API_KEY is not set")

        body: dict[str, Any] = {"contents": list(contents)}
        if system_instruction:
            body["systemInstruction"] = {"parts": [text_part(system_instruction)]}
        if response_schema is not None:
            body["generationConfig"] = {
                "responseMimeType": "application/json",
                "responseSchema": response_schema,
            }
        if tools:
            body["tools"] = list(tools)

        logger.info("Calling Gemini model %s...", self.config.model)
        try:
            start_time = time.time()
            async with httpx.AsyncClient(timeout=self.config.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.endpoint,
                    json=body,
                    headers={"x-goog-api-key": self.config.api_key},
                )
            logger.info("Gemini returned in %.2f seconds", time.time() - start_time)
        except httpx.RequestError as e:
            logger.error("Failed to connect to Gemini: %s", e)
            raise AIServiceUnavailable(f"Failed to connect to Gemini: {e}") from e

        if response.status_code != 200:
            # The body may echo parts of the uploaded document; keep it at debug level.
            logger.error("Gemini error: %s", response.status_code)
            logger.debug("Gemini error body: %s", response.text)
            raise AIServiceUnavailable(f"Gemini error: {response.status_code}")

        try:
            payload = response.json()
        except ValueError as e:
            raise AIServiceUnavailable("Gemini returned a non-JSON body") from e

        return GeminiResponse(text=_response_text(payload), sources=grounding_sources(payload))
