from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.fsm.storage.memory import MemoryStorage

from assistbot.config import Config
from assistbot.errors import ConfigurationError
from assistbot.handlers import register_all_handlers
from assistbot.middlewares.chat_event import ChatEventMiddleware
from assistbot.services.dispatch import Dispatcher as MessageDispatcher


def create_bot(config: Config) -> Bot:
    if not config.telegram_bot_token:
        raise ConfigurationError("TELEGRAM_BOT_TOKEN is not set in .env")
    return Bot(
        token=config.telegram_bot_token,
        default=DefaultBotProperties(parse_mode=None),
    )


def create_dispatcher(message_dispatcher: MessageDispatcher) -> Dispatcher:
    dp = Dispatcher(storage=MemoryStorage())
    dp["message_dispatcher"] = message_dispatcher

    dp.message.middleware(ChatEventMiddleware())

    register_all_handlers(dp)

    return dp
