from aiogram import Dispatcher

from assistbot.handlers import messages


def register_all_handlers(dp: Dispatcher) -> None:
    # Single catch-all: routing between commands, moderation and replies
    # happens in services.dispatch, not in aiogram filters
    dp.include_router(messages.router)
