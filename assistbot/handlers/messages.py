from aiogram import F, Router
from aiogram.types import Message

from assistbot.gateway import Gateway, MessageEvent
from assistbot.services.dispatch import Dispatcher

router = Router()


@router.message(F.text | F.caption)
async def handle_message(
    message: Message,
    chat_event: MessageEvent,
    gateway: Gateway,
    message_dispatcher: Dispatcher,
) -> None:
    await message_dispatcher.handle(chat_event, gateway)
