"""Persistence facade used by the services.

Every call opens its own aiosqlite connection and closes it before returning,
so callers never share a connection across tasks.
"""

from __future__ import annotations

import json
from contextlib import asynccontextmanager
from typing import AsyncIterator

import aiosqlite

from assistbot.db.engine import get_db
from assistbot.db.records import (
    ApiIntegration,
    BotSettings,
    ContextMessage,
    Conversation,
    ModerationAction,
    ModerationType,
)
from assistbot.db.repositories import command as command_repo
from assistbot.db.repositories import conversation as conversation_repo
from assistbot.db.repositories import integration as integration_repo
from assistbot.db.repositories import moderation as moderation_repo
from assistbot.db.repositories import settings as settings_repo
from assistbot.db.repositories.user import get_or_create_user


def _to_conversation(row: dict) -> Conversation:
    raw = json.loads(row["context"] or "[]")
    return Conversation(
        id=row["id"],
        user_id=row["user_id"],
        window=[ContextMessage.from_dict(m) for m in raw],
        active=bool(row["active"]),
        last_updated=row["last_updated"],
    )


def _to_integration(row: dict) -> ApiIntegration:
    return ApiIntegration(
        id=row["id"],
        name=row["name"],
        type=row["type"],
        endpoint=row["endpoint"],
        api_key=row["api_key"] or None,
        active=bool(row["active"]),
        usage=row["usage"],
        monthly_limit=row["monthly_limit"],
        last_call=row["last_call"],
    )


class Storage:
    def __init__(self, db_path: str) -> None:
        self.db_path = db_path

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        db = await get_db(self.db_path)
        try:
            yield db
        finally:
            await db.close()

    # Users

    async def ensure_user(self, user_id: int, display_name: str | None = None) -> dict:
        async with self._connect() as db:
            return await get_or_create_user(db, user_id, display_name)

    # Settings

    async def get_settings(self) -> BotSettings:
        async with self._connect() as db:
            values = await settings_repo.get_all_settings(db)
        return BotSettings.from_mapping(values)

    async def set_setting(self, key: str, value: str) -> None:
        async with self._connect() as db:
            await settings_repo.set_setting(db, key, value)

    # Conversations

    async def get_active_conversation(self, user_id: int) -> Conversation | None:
        async with self._connect() as db:
            row = await conversation_repo.get_active(db, user_id)
        return _to_conversation(row) if row else None

    async def create_conversation(self, user_id: int) -> Conversation:
        async with self._connect() as db:
            row = await conversation_repo.create(db, user_id)
        return _to_conversation(row)

    async def update_conversation_window(
        self,
        conversation_id: int,
        window: list[ContextMessage],
    ) -> None:
        payload = json.dumps([m.to_dict() for m in window], ensure_ascii=False)
        async with self._connect() as db:
            await conversation_repo.update_context(db, conversation_id, payload)

    async def close_conversation(self, conversation_id: int) -> bool:
        async with self._connect() as db:
            return await conversation_repo.close(db, conversation_id)

    async def count_conversations(self, user_id: int) -> int:
        async with self._connect() as db:
            return await conversation_repo.count_for_user(db, user_id)

    async def active_conversation_user_ids(self) -> list[int]:
        async with self._connect() as db:
            return await conversation_repo.active_user_ids(db)

    # Moderation

    async def record_moderation_action(self, action: ModerationAction) -> None:
        if action.type is ModerationType.NONE:
            raise ValueError("'none' is not a recordable moderation action")
        async with self._connect() as db:
            await moderation_repo.add_action(
                db, action.user_id, action.type.value, action.reason
            )

    async def get_moderation_actions(self, user_id: int) -> list[ModerationAction]:
        async with self._connect() as db:
            rows = await moderation_repo.get_actions(db, user_id)
        return [
            ModerationAction(
                user_id=r["user_id"],
                type=ModerationType(r["type"]),
                reason=r["reason"],
                created_at=r["created_at"],
            )
            for r in rows
        ]

    # Commands

    async def record_command_usage(self, name: str, description: str = "") -> int:
        async with self._connect() as db:
            return await command_repo.increment_usage(db, name, description)

    async def get_command_usage(self, name: str) -> int:
        async with self._connect() as db:
            return await command_repo.get_usage(db, name)

    # Integrations

    async def get_integration(self, integration_type: str) -> ApiIntegration | None:
        async with self._connect() as db:
            row = await integration_repo.get_by_type(db, integration_type)
        return _to_integration(row) if row else None

    async def set_integration_active(self, integration_type: str, active: bool) -> bool:
        async with self._connect() as db:
            return await integration_repo.set_active(db, integration_type, active)

    async def record_integration_usage(self, integration_id: int) -> None:
        async with self._connect() as db:
            await integration_repo.record_call(db, integration_id)
