import asyncio
import logging

from aiogram import Bot
from aiogram.exceptions import TelegramAPIError
from aiogram.types import BotCommand

from assistbot.config import config
from assistbot.db.engine import init_db
from assistbot.db.storage import Storage
from assistbot.errors import ConfigurationError
from assistbot.loader import create_bot, create_dispatcher
from assistbot.services.commands import build_registry
from assistbot.services.context import ContextManager
from assistbot.services.dispatch import Dispatcher
from assistbot.services.integrations import IntegrationClient
from assistbot.services.llm import OpenAIClient
from assistbot.services.moderation import Moderator
from assistbot.services.nlp import Availability, NLPResponder, NLPState
from assistbot.services.scheduler import Reminder, Scheduler

logger = logging.getLogger(__name__)


def _reminder_sender(bot: Bot):
    async def deliver(reminder: Reminder) -> None:
        try:
            await bot.send_message(chat_id=reminder.user_id, text=f"Reminder: {reminder.text}")
        except TelegramAPIError:
            # No private chat with the user yet: fall back to where it was requested
            if reminder.chat_id == reminder.user_id:
                raise
            await bot.send_message(chat_id=reminder.chat_id, text=f"Reminder: {reminder.text}")

    return deliver


async def _initial_availability(client: OpenAIClient) -> Availability:
    try:
        await client.validate_credentials()
    except ConfigurationError as e:
        logger.warning("Language model unavailable (%s), starting in fallback mode", e)
        return Availability(NLPState.FALLBACK)
    logger.info("Language model credentials accepted")
    return Availability(NLPState.LIVE)


async def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    logger.info("Initializing database...")
    await init_db(config.db_path)
    storage = Storage(config.db_path)

    openai = OpenAIClient(config.openai_api_key, config.openai_base_url, config.llm_timeout)
    integrations = IntegrationClient()
    availability = await _initial_availability(openai)

    bot = create_bot(config)
    me = await bot.me()
    if config.privileged_content is None:
        has_privileged_content = bool(me.can_read_all_group_messages)
    else:
        has_privileged_content = config.privileged_content
    if not has_privileged_content:
        logger.warning("Bot cannot read group messages; replies limited to mentions and DMs")

    context = ContextManager(storage)
    registry = build_registry()
    scheduler = Scheduler(_reminder_sender(bot))
    message_dispatcher = Dispatcher(
        config=config,
        storage=storage,
        registry=registry,
        moderator=Moderator(openai.score, storage),
        responder=NLPResponder(openai, context, storage, availability),
        context=context,
        scheduler=scheduler,
        integrations=integrations,
        has_privileged_content=has_privileged_content,
    )
    dp = create_dispatcher(message_dispatcher)

    if config.command_prefix == "/":
        try:
            await bot.set_my_commands([
                BotCommand(command=name, description=description[:256])
                for name, description in registry.list()
                if not registry.resolve(name).admin_only
            ])
            logger.info("Bot commands menu set.")
        except Exception:
            logger.warning("Failed to set bot commands menu, continuing anyway.", exc_info=True)

    scheduler_task = asyncio.create_task(scheduler.run())
    logger.info("Starting bot as @%s...", me.username)
    try:
        await dp.start_polling(bot)
    finally:
        scheduler.stop()
        await scheduler_task
        await openai.close()
        await integrations.close()
        await bot.session.close()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
