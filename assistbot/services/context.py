"""Bounded per-user conversation history.

The stored window of the active conversation never holds more than
``2 * context_size`` messages; ``get`` hands back the last ``context_size``.
The system instruction is added only when formatting for generation and is
never stored.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable

from assistbot.db.records import BotSettings, ContextMessage, Conversation, Role
from assistbot.db.storage import Storage

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = (
    "You are a helpful Telegram bot assistant. Provide concise, accurate "
    "information. If you don't know something, say so rather than making up "
    "information."
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def window_limit(context_size: int) -> int:
    return 2 * max(context_size, 0)


def truncate(window: list[ContextMessage], context_size: int) -> list[ContextMessage]:
    limit = window_limit(context_size)
    if len(window) <= limit:
        return window
    return window[len(window) - limit:] if limit else []


def format_for_generation(window: list[ContextMessage]) -> list[dict]:
    """Role-tagged messages for the backend: system instruction, then the window."""
    messages = [{"role": Role.SYSTEM.value, "content": SYSTEM_INSTRUCTION}]
    messages.extend({"role": m.role.value, "content": m.content} for m in window)
    return messages


class ContextManager:
    def __init__(
        self,
        storage: Storage,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._storage = storage
        self._clock = clock

    async def _active_or_new(self, user_id: int) -> Conversation:
        conversation = await self._storage.get_active_conversation(user_id)
        if conversation is None:
            conversation = await self._storage.create_conversation(user_id)
            logger.debug("Started conversation %s for user %s", conversation.id, user_id)
        return conversation

    async def get(
        self,
        user_id: int,
        settings: BotSettings | None = None,
    ) -> list[ContextMessage]:
        settings = settings or await self._storage.get_settings()
        if not settings.context_awareness:
            return []
        conversation = await self._active_or_new(user_id)
        size = settings.context_size
        return conversation.window[-size:] if size > 0 else []

    async def append_user(
        self,
        user_id: int,
        content: str,
        settings: BotSettings | None = None,
    ) -> None:
        await self._append(user_id, Role.USER, content, settings)

    async def append_assistant(
        self,
        user_id: int,
        content: str,
        settings: BotSettings | None = None,
    ) -> None:
        await self._append(user_id, Role.ASSISTANT, content, settings)

    async def _append(
        self,
        user_id: int,
        role: Role,
        content: str,
        settings: BotSettings | None,
    ) -> None:
        settings = settings or await self._storage.get_settings()
        if not settings.context_awareness:
            return
        conversation = await self._active_or_new(user_id)

        timestamp = self._clock()
        if conversation.window and timestamp < conversation.window[-1].timestamp:
            timestamp = conversation.window[-1].timestamp

        window = conversation.window + [ContextMessage(role, content, timestamp)]
        window = truncate(window, settings.context_size)
        await self._storage.update_conversation_window(conversation.id, window)

    async def resize(self, user_id: int, new_size: int) -> None:
        conversation = await self._storage.get_active_conversation(user_id)
        if conversation is None:
            return
        if len(conversation.window) > window_limit(new_size):
            await self._storage.update_conversation_window(
                conversation.id, truncate(conversation.window, new_size)
            )

    async def resize_all(self, new_size: int) -> int:
        user_ids = await self._storage.active_conversation_user_ids()
        for user_id in user_ids:
            await self.resize(user_id, new_size)
        logger.info("Context size set to %d for %d active conversations", new_size, len(user_ids))
        return len(user_ids)

    async def close(self, user_id: int) -> bool:
        conversation = await self._storage.get_active_conversation(user_id)
        if conversation is None:
            return False
        return await self._storage.close_conversation(conversation.id)
