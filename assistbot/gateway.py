"""Chat gateway boundary: inbound events and the side effects the core may request."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from aiogram import Bot
from aiogram.enums import ChatType, MessageEntityType
from aiogram.exceptions import TelegramAPIError
from aiogram.types import ChatPermissions, Message, User

from assistbot.errors import DeliveryError, EffectApplicationError
from assistbot.utils.text import split_message

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MessageEvent:
    author_id: int
    author_name: str | None
    is_bot: bool
    content: str
    is_mentioned: bool
    is_dm: bool
    chat_id: int
    # Group/supergroup id where membership effects apply; None in private chats
    guild_context: int | None = None


class Gateway(ABC):
    """Side effects bound to one inbound message."""

    @abstractmethod
    async def reply(self, text: str) -> None:
        ...

    @abstractmethod
    async def reply_privately(self, text: str) -> None:
        ...

    @abstractmethod
    async def delete_message(self) -> None:
        ...

    @abstractmethod
    async def timeout_author(self, duration_ms: int, reason: str) -> None:
        ...

    @abstractmethod
    async def ban_author(self, reason: str) -> None:
        ...

    @abstractmethod
    async def kick_author(self, reason: str) -> None:
        ...


def _mentions_bot(message: Message, me: User) -> bool:
    if message.reply_to_message and message.reply_to_message.from_user:
        if message.reply_to_message.from_user.id == me.id:
            return True
    text = message.text or message.caption or ""
    entities = message.entities or message.caption_entities or []
    for entity in entities:
        if entity.type == MessageEntityType.MENTION and me.username:
            mention = entity.extract_from(text)
            if mention.lstrip("@").lower() == me.username.lower():
                return True
        if entity.type == MessageEntityType.TEXT_MENTION and entity.user:
            if entity.user.id == me.id:
                return True
    return False


def event_from_message(message: Message, me: User) -> MessageEvent | None:
    """Build a MessageEvent, or None for updates without an author."""
    author = message.from_user
    if author is None:
        return None
    is_dm = message.chat.type == ChatType.PRIVATE
    return MessageEvent(
        author_id=author.id,
        author_name=author.full_name or author.username,
        is_bot=author.is_bot,
        content=message.text or message.caption or "",
        is_mentioned=_mentions_bot(message, me),
        is_dm=is_dm,
        chat_id=message.chat.id,
        guild_context=None if is_dm else message.chat.id,
    )


class TelegramGateway(Gateway):
    def __init__(self, bot: Bot, message: Message) -> None:
        self._bot = bot
        self._message = message

    def _require_group(self, effect: str) -> tuple[int, int]:
        chat = self._message.chat
        author = self._message.from_user
        if chat.type == ChatType.PRIVATE or author is None:
            raise EffectApplicationError(f"cannot {effect} outside a group chat")
        return chat.id, author.id

    async def reply(self, text: str) -> None:
        try:
            for chunk in split_message(text):
                await self._message.answer(chunk)
        except TelegramAPIError as e:
            raise DeliveryError(f"reply failed: {e}") from e

    async def reply_privately(self, text: str) -> None:
        if self._message.from_user is None:
            raise DeliveryError("message has no author")
        try:
            await self._bot.send_message(chat_id=self._message.from_user.id, text=text)
        except TelegramAPIError as e:
            # Users who never opened a private chat with the bot cannot be messaged
            raise DeliveryError(f"private notice failed: {e}") from e

    async def delete_message(self) -> None:
        try:
            await self._message.delete()
        except TelegramAPIError as e:
            raise EffectApplicationError(f"delete failed: {e}") from e

    async def timeout_author(self, duration_ms: int, reason: str) -> None:
        chat_id, user_id = self._require_group("time out")
        until = datetime.now(timezone.utc) + timedelta(milliseconds=duration_ms)
        try:
            await self._bot.restrict_chat_member(
                chat_id=chat_id,
                user_id=user_id,
                permissions=ChatPermissions(can_send_messages=False),
                until_date=until,
            )
        except TelegramAPIError as e:
            raise EffectApplicationError(f"timeout failed: {e}") from e
        logger.info("Timed out user %s in chat %s for %d ms: %s", user_id, chat_id, duration_ms, reason)

    async def ban_author(self, reason: str) -> None:
        chat_id, user_id = self._require_group("ban")
        try:
            await self._bot.ban_chat_member(chat_id=chat_id, user_id=user_id)
        except TelegramAPIError as e:
            raise EffectApplicationError(f"ban failed: {e}") from e
        logger.info("Banned user %s from chat %s: %s", user_id, chat_id, reason)

    async def kick_author(self, reason: str) -> None:
        chat_id, user_id = self._require_group("kick")
        try:
            await self._bot.ban_chat_member(chat_id=chat_id, user_id=user_id)
            await self._bot.unban_chat_member(chat_id=chat_id, user_id=user_id, only_if_banned=True)
        except TelegramAPIError as e:
            raise EffectApplicationError(f"kick failed: {e}") from e
        logger.info("Kicked user %s from chat %s: %s", user_id, chat_id, reason)
