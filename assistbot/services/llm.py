"""OpenAI-compatible HTTP client for chat completions and moderation scores."""

import asyncio
import json
import logging
import re

import aiohttp

from assistbot.errors import (
    BackendError,
    BackendQuotaError,
    BackendRateLimitError,
    BackendTransientError,
    ConfigurationError,
)
from assistbot.services.moderation import CategoryScore

logger = logging.getLogger(__name__)

MODEL_ALIASES = {"gpt": "gpt-4o"}
_PLACEHOLDER_KEYS = frozenset({"", "mock-key", "changeme", "your-api-key"})

_think_pattern = re.compile(r"<think>.*?</think>", re.DOTALL)


def _strip_think(text: str) -> str:
    return _think_pattern.sub("", text).strip()


def resolve_model(model: str) -> str:
    return MODEL_ALIASES.get(model, model)


def classify_failure(status: int, body: str) -> BackendError:
    """Map an HTTP error response onto the backend error taxonomy."""
    lowered = body.lower()
    if status == 402 or "insufficient_quota" in lowered:
        return BackendQuotaError(f"quota exceeded ({status})", status)
    if status == 429:
        return BackendRateLimitError(f"rate limited ({status})", status)
    return BackendTransientError(f"backend returned {status}", status)


class OpenAIClient:
    def __init__(
        self,
        api_key: str | None,
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 60.0,
    ) -> None:
        self._api_key = api_key or ""
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
            self._session = None

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    async def _post(self, path: str, payload: dict, timeout: float | None = None) -> dict:
        url = f"{self._base_url}{path}"
        client_timeout = aiohttp.ClientTimeout(total=timeout or self._timeout)
        try:
            session = self._get_session()
            async with session.post(
                url, json=payload, headers=self._headers(), timeout=client_timeout
            ) as resp:
                if resp.status != 200:
                    body = await resp.text()
                    logger.warning("Backend %s returned %s: %s", path, resp.status, body[:500])
                    raise classify_failure(resp.status, body)
                try:
                    return await resp.json()
                except (ValueError, aiohttp.ContentTypeError) as e:
                    raise BackendTransientError(f"invalid JSON from backend: {e}") from e
        except asyncio.TimeoutError as e:
            raise BackendTransientError(f"backend timed out on {path}") from e
        except aiohttp.ClientError as e:
            raise BackendTransientError(f"connection error: {e}") from e

    async def validate_credentials(self) -> None:
        """Raise ConfigurationError when the key is missing or rejected."""
        if self._api_key.strip().lower() in _PLACEHOLDER_KEYS:
            raise ConfigurationError("OPENAI_API_KEY is not set")

        timeout = aiohttp.ClientTimeout(total=15)
        try:
            session = self._get_session()
            async with session.get(
                f"{self._base_url}/models", headers=self._headers(), timeout=timeout
            ) as resp:
                if resp.status in (401, 403):
                    raise ConfigurationError(f"OPENAI_API_KEY rejected ({resp.status})")
                if resp.status != 200:
                    logger.warning("Credential check returned %s, assuming key is usable", resp.status)
        except (asyncio.TimeoutError, aiohttp.ClientError) as e:
            logger.warning("Credential check could not reach backend: %s", e)

    async def complete(
        self,
        model: str,
        messages: list[dict],
        temperature: float,
        max_tokens: int,
        *,
        json_mode: bool = False,
    ) -> str:
        payload = {
            "model": resolve_model(model),
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        data = await self._post("/chat/completions", payload)
        try:
            raw = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            logger.error("Unexpected completion response: %s", data)
            raise BackendTransientError("unexpected completion payload") from e
        return _strip_think(raw) if raw else ""

    async def score(self, text: str) -> dict[str, CategoryScore]:
        """Per-category flags and scores from the moderation endpoint."""
        data = await self._post("/moderations", {"input": text}, timeout=15)
        try:
            result = data["results"][0]
            categories = result["categories"]
            scores = result["category_scores"]
            return {
                name: CategoryScore(bool(categories.get(name)), float(scores.get(name, 0.0)))
                for name in set(categories) | set(scores)
            }
        except (KeyError, IndexError, TypeError, ValueError, AttributeError) as e:
            logger.error("Unexpected moderation response: %s", data)
            raise BackendTransientError("unexpected moderation payload") from e


def parse_json_object(text: str) -> dict:
    """Parse a JSON object from model output, tolerating fenced code blocks."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.strip("`")
        if cleaned.lower().startswith("json"):
            cleaned = cleaned[4:]
    data = json.loads(cleaned)
    if not isinstance(data, dict):
        raise ValueError("expected a JSON object")
    return data
