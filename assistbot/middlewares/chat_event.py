from typing import Any, Awaitable, Callable

from aiogram import BaseMiddleware
from aiogram.types import Message

from assistbot.gateway import TelegramGateway, event_from_message


class ChatEventMiddleware(BaseMiddleware):
    """Translate aiogram messages into gateway-neutral events."""

    async def __call__(
        self,
        handler: Callable[[Message, dict[str, Any]], Awaitable[Any]],
        event: Message,
        data: dict[str, Any],
    ) -> Any:
        me = await event.bot.me()
        chat_event = event_from_message(event, me)
        if chat_event is None:
            return None
        data["chat_event"] = chat_event
        data["gateway"] = TelegramGateway(event.bot, event)
        return await handler(event, data)
