"""Third-party data sources behind the weather, translate and news commands."""

import asyncio
import logging

import aiohttp

from assistbot.db.records import ApiIntegration

logger = logging.getLogger(__name__)

NEWS_CATEGORIES = ("business", "entertainment", "general", "health", "science", "sports", "technology")
_TIMEOUT = aiohttp.ClientTimeout(total=15)


class IntegrationError(Exception):
    """The upstream service failed or answered with an unexpected payload."""


class IntegrationClient:
    def __init__(self) -> None:
        self._session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
            self._session = None

    async def _request(self, method: str, url: str, **kwargs) -> dict:
        try:
            session = self._get_session()
            async with session.request(method, url, timeout=_TIMEOUT, **kwargs) as resp:
                if resp.status != 200:
                    body = await resp.text()
                    raise IntegrationError(f"{url} returned {resp.status}: {body[:200]}")
                return await resp.json()
        except (asyncio.TimeoutError, aiohttp.ClientError, ValueError) as e:
            raise IntegrationError(f"{url} request failed: {e}") from e

    async def weather(self, integration: ApiIntegration, api_key: str, location: str) -> str:
        data = await self._request(
            "GET",
            integration.endpoint,
            params={"q": location, "appid": api_key, "units": "metric"},
        )
        try:
            temp = data["main"]["temp"]
            return (
                f"Weather in {data['name']}, {data['sys']['country']}: "
                f"{data['weather'][0]['description']}\n"
                f"Temperature: {temp}°C ({temp * 9 / 5 + 32:.1f}°F)\n"
                f"Humidity: {data['main']['humidity']}%\n"
                f"Wind: {data['wind']['speed']} m/s"
            )
        except (KeyError, IndexError, TypeError) as e:
            raise IntegrationError(f"unexpected weather payload: {e}") from e

    async def translate(self, integration: ApiIntegration, api_key: str, target: str, text: str) -> str:
        data = await self._request(
            "POST",
            integration.endpoint,
            params={"key": api_key},
            json={"q": text, "target": target, "format": "text"},
        )
        try:
            translated = data["data"]["translations"][0]["translatedText"]
        except (KeyError, IndexError, TypeError) as e:
            raise IntegrationError(f"unexpected translation payload: {e}") from e
        return f"Translation ({target}):\n{translated}"

    async def news(self, integration: ApiIntegration, api_key: str, category: str) -> str:
        data = await self._request(
            "GET",
            integration.endpoint,
            params={"country": "us", "category": category, "apiKey": api_key},
        )
        articles = data.get("articles") or []
        if not articles:
            return f"No {category} headlines right now."
        lines = [f"Top {category.capitalize()} News Headlines"]
        for i, article in enumerate(articles[:5], start=1):
            lines.append(f"{i}. {article.get('title') or 'Untitled'}")
            if article.get("url"):
                lines.append(f"   {article['url']}")
        return "\n".join(lines)
