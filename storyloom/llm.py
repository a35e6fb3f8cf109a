"""LLM client — HTTP connection to a text-generation backend.

The story generator injects an LLM callable matching the protocol:

    async def __call__(self, stage: str, prompt: str, schema: dict | None = None) -> str: ...

`stage` identifies the caller (currently always "story"); it is used for
logging only. `schema` is a structured-output schema that backends able to
enforce one receive alongside the prompt; the others ignore it.

Two implementations are provided:

    HttpLLM    — real HTTP client, supports KoboldCpp, OpenAI-compatible
                 and Gemini backends. Selected by provider_format.
    CannedLLM  — returns a fixed text. Lets the app run end-to-end (the
                 "demo" provider) without a model.

Tests use StubLLM (defined in conftest) or patch httpx directly.
"""

from __future__ import annotations

import logging
from typing import Any, Literal, Protocol

import httpx

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol: every LLM implementation must match this signature
# ---------------------------------------------------------------------------

class LLM(Protocol):
    async def __call__(
        self, stage: str, prompt: str, schema: dict[str, Any] | None = None
    ) -> str: ...


# ---------------------------------------------------------------------------
# HttpLLM: connects to a real backend
# ---------------------------------------------------------------------------

ProviderFormat = Literal["koboldcpp", "openai", "gemini"]


class HttpLLM:
    """Async HTTP client for text-generation backends.

    Supported formats:
      "koboldcpp"  — POST /api/v1/generate  {"prompt": ...}
                     Response: {"results": [{"text": "..."}]}
      "openai"     — POST /v1/completions   {"model": ..., "prompt": ...}
                     Response: {"choices": [{"text": "..."}]}
      "gemini"     — POST /v1beta/models/{model}:generateContent
                     {"contents": [...], "generationConfig": {...}}
                     Response: {"candidates": [{"content": {"parts": [{"text": "..."}]}}]}
                     JSON output is requested and the schema enforced.

    Args:
        provider_url:    Base URL of the backend, e.g. "http://localhost:5001".
        api_key:         Bearer token (x-goog-api-key for gemini), or empty.
        provider_format: Wire format to use. Defaults to "koboldcpp".
        model:           Model identifier, used by the openai and gemini formats.
        timeout:         HTTP timeout in seconds. Defaults to 120.
        temperature:     Sampling temperature, omitted when None.
    """

    def __init__(
        self,
        provider_url: str,
        api_key: str = "",
        provider_format: ProviderFormat = "koboldcpp",
        model: str = "",
        timeout: float = 120.0,
        temperature: float | None = None,
    ) -> None:
        self._base_url = provider_url.rstrip("/")
        self._api_key = api_key
        self._format = provider_format
        self._model = model
        self._timeout = timeout
        self._temperature = temperature

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            if self._format == "gemini":
                headers["x-goog-api-key"] = self._api_key
            else:
                headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_request(self, prompt: str, schema: dict[str, Any] | None) -> tuple[str, dict]:
        """Return (url, body) for the configured format."""
        if self._format == "gemini":
            url = f"{self._base_url}/v1beta/models/{self._model}:generateContent"
            config: dict[str, Any] = {"responseMimeType": "application/json"}
            if schema is not None:
                config["responseSchema"] = schema
            if self._temperature is not None:
                config["temperature"] = self._temperature
            body: dict = {
                "contents": [{"parts": [{"text": prompt}]}],
                "generationConfig": config,
            }
            return url, body

        if self._format == "openai":
            url = f"{self._base_url}/v1/completions"
            body = {"prompt": prompt}
            if self._model:
                body["model"] = self._model
            if self._temperature is not None:
                body["temperature"] = self._temperature
            return url, body

        # koboldcpp (default)
        url = f"{self._base_url}/api/v1/generate"
        body = {"prompt": prompt}
        if self._temperature is not None:
            body["temperature"] = self._temperature
        return url, body

    def _parse_response(self, data: dict) -> str:
        """Extract the completion text from the response body."""
        if self._format == "gemini":
            try:
                return data["candidates"][0]["content"]["parts"][0]["text"]
            except (KeyError, IndexError, TypeError) as e:
                raise LLMError("Unexpected response format from Gemini backend") from e

        if self._format == "openai":
            choices = data.get("choices")
            if not choices or "text" not in choices[0]:
                raise LLMError("Unexpected response format from OpenAI-compatible backend")
            return choices[0]["text"]

        # koboldcpp
        results = data.get("results")
        if not results or "text" not in results[0]:
            raise LLMError("Unexpected response format from KoboldCpp backend")
        return results[0]["text"]

    async def __call__(
        self, stage: str, prompt: str, schema: dict[str, Any] | None = None
    ) -> str:
        url, body = self._build_request(prompt, schema)
        logger.debug("llm call stage=%s url=%s prompt_len=%d", stage, url, len(prompt))

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise LLMError(f"Cannot connect to LLM backend at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise LLMError(
                f"LLM backend returned HTTP {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            raise LLMError(f"LLM backend timed out after {self._timeout}s") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise LLMError(f"LLM request to {self._base_url} failed: {e}") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise LLMError("LLM backend returned a non-JSON body") from e
        if not isinstance(data, dict):
            raise LLMError("Unexpected response format from LLM backend")
        text = self._parse_response(data)
        logger.debug("llm response stage=%s len=%d", stage, len(text))
        return text


# ---------------------------------------------------------------------------
# CannedLLM: fixed response; backs the offline "demo" provider
# ---------------------------------------------------------------------------

class CannedLLM:
    """Returns the same text for every call. No network calls."""

    def __init__(self, text: str) -> None:
        self._text = text

    async def __call__(
        self, stage: str, prompt: str, schema: dict[str, Any] | None = None
    ) -> str:
        logger.debug("CannedLLM stage=%s prompt_len=%d", stage, len(prompt))
        return self._text


# ---------------------------------------------------------------------------
# LLMError: raised by HttpLLM for all connection and protocol failures
# ---------------------------------------------------------------------------

class LLMError(RuntimeError):
    """Raised when the LLM backend cannot be reached or returns an error."""
