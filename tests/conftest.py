"""
Pytest configuration and shared fixtures for assistbot tests.
"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

# Add the project root to the path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from assistbot.config import Config  # noqa: E402
from assistbot.db.engine import init_db  # noqa: E402
from assistbot.db.storage import Storage  # noqa: E402
from assistbot.errors import DeliveryError, EffectApplicationError  # noqa: E402
from assistbot.gateway import Gateway, MessageEvent  # noqa: E402

ADMIN_ID = 1000


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeGateway(Gateway):
    """Records every side effect; effects named in ``fail`` raise."""

    _ERRORS = {
        "reply": DeliveryError,
        "reply_privately": DeliveryError,
        "delete_message": EffectApplicationError,
        "timeout_author": EffectApplicationError,
        "ban_author": EffectApplicationError,
        "kick_author": EffectApplicationError,
    }

    def __init__(self, fail: tuple[str, ...] = ()) -> None:
        self.calls: list[tuple] = []
        self.fail = set(fail)

    async def _record(self, name: str, *args) -> None:
        self.calls.append((name, *args))
        if name in self.fail:
            raise self._ERRORS[name](f"{name} failed")

    @property
    def replies(self) -> list[str]:
        return [c[1] for c in self.calls if c[0] == "reply"]

    def called(self, name: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == name]

    async def reply(self, text: str) -> None:
        await self._record("reply", text)

    async def reply_privately(self, text: str) -> None:
        await self._record("reply_privately", text)

    async def delete_message(self) -> None:
        await self._record("delete_message")

    async def timeout_author(self, duration_ms: int, reason: str) -> None:
        await self._record("timeout_author", duration_ms, reason)

    async def ban_author(self, reason: str) -> None:
        await self._record("ban_author", reason)

    async def kick_author(self, reason: str) -> None:
        await self._record("kick_author", reason)


def make_event(
    content: str = "hello",
    *,
    author_id: int = 42,
    is_bot: bool = False,
    is_mentioned: bool = False,
    is_dm: bool = False,
) -> MessageEvent:
    chat_id = author_id if is_dm else -100123
    return MessageEvent(
        author_id=author_id,
        author_name="Tester",
        is_bot=is_bot,
        content=content,
        is_mentioned=is_mentioned,
        is_dm=is_dm,
        chat_id=chat_id,
        guild_context=None if is_dm else chat_id,
    )


def fake_session(status: int, json_data=None, text: str = ""):
    """aiohttp session stand-in whose get/post both yield one canned response."""
    resp = MagicMock()
    resp.status = status
    resp.json = AsyncMock(return_value=json_data)
    resp.text = AsyncMock(return_value=text)
    cm = MagicMock()
    cm.__aenter__ = AsyncMock(return_value=resp)
    cm.__aexit__ = AsyncMock(return_value=False)
    session = MagicMock()
    session.closed = False
    session.get.return_value = cm
    session.post.return_value = cm
    return session


@pytest.fixture
def config():
    return Config(
        telegram_bot_token=None,
        openai_api_key=None,
        command_prefix="/",
        admin_ids=frozenset({ADMIN_ID}),
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest_asyncio.fixture
async def storage(tmp_path):
    """Storage backed by a fresh sqlite file."""
    path = str(tmp_path / "data" / "test.db")
    await init_db(path)
    return Storage(path)
