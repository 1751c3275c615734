"""Prefix commands: a fixed registry of ``Command`` values.

Handlers receive the split arguments and a ``CommandContext`` and return a
``CommandResult``. A result with ``ok=False`` is still replied to the user but
does not count towards the command's usage statistics.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING, Awaitable, Callable, Iterable

from assistbot.db.records import BotSettings, ModerationType, parse_setting
from assistbot.gateway import MessageEvent
from assistbot.services.integrations import NEWS_CATEGORIES, IntegrationError
from assistbot.services.scheduler import MAX_REMINDER_MINUTES, Reminder

if TYPE_CHECKING:
    from assistbot.config import Config
    from assistbot.db.storage import Storage
    from assistbot.services.context import ContextManager
    from assistbot.services.integrations import IntegrationClient
    from assistbot.services.moderation import Moderator
    from assistbot.services.nlp import NLPResponder
    from assistbot.services.scheduler import Scheduler

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    text: str
    ok: bool = True


@dataclass
class CommandContext:
    event: MessageEvent
    settings: BotSettings
    storage: Storage
    context: ContextManager
    responder: NLPResponder
    moderator: Moderator
    scheduler: Scheduler
    integrations: IntegrationClient
    registry: CommandRegistry
    config: Config

    @property
    def prefix(self) -> str:
        return self.config.command_prefix

    @property
    def is_admin(self) -> bool:
        return self.event.author_id in self.config.admin_ids


Handler = Callable[[list[str], CommandContext], Awaitable[CommandResult]]


@dataclass(frozen=True)
class Command:
    name: str
    description: str
    execute: Handler
    admin_only: bool = False


class CommandRegistry:
    def __init__(self, commands: Iterable[Command]) -> None:
        self._commands: dict[str, Command] = {}
        for command in commands:
            key = command.name.lower()
            if key in self._commands:
                raise ValueError(f"duplicate command: {command.name}")
            self._commands[key] = command

    def resolve(self, name: str) -> Command | None:
        return self._commands.get(name.lower())

    def list(self) -> list[tuple[str, str]]:
        return [(c.name, c.description) for c in self._commands.values()]


# ---------------------------------------------------------------------------
# General commands
# ---------------------------------------------------------------------------

WELCOME_MESSAGE = (
    "Hi! I'm an AI assistant. Mention me or message me directly to chat, "
    "or use {prefix}help to see what else I can do."
)


async def cmd_start(args: list[str], ctx: CommandContext) -> CommandResult:
    return CommandResult(WELCOME_MESSAGE.format(prefix=ctx.prefix))


async def cmd_help(args: list[str], ctx: CommandContext) -> CommandResult:
    if args:
        command = ctx.registry.resolve(args[0])
        if command is not None:
            return CommandResult(f"{ctx.prefix}{command.name}: {command.description}")

    lines = ["Available commands:"]
    for name, description in ctx.registry.list():
        command = ctx.registry.resolve(name)
        if command.admin_only and not ctx.is_admin:
            continue
        lines.append(f"{ctx.prefix}{name} — {description}")
    lines.append("")
    lines.append("You can also talk to me naturally and I'll try to understand your request!")
    return CommandResult("\n".join(lines))


async def _integration_key(ctx: CommandContext, integration_type: str, label: str, env_key: str | None):
    integration = await ctx.storage.get_integration(integration_type)
    if integration is None or not integration.active:
        return None, CommandResult(f"{label} service is currently unavailable.", ok=False)
    api_key = integration.api_key or env_key
    if not api_key:
        return None, CommandResult(f"{label} API key is not configured.", ok=False)
    return (integration, api_key), None


async def cmd_weather(args: list[str], ctx: CommandContext) -> CommandResult:
    if not args:
        return CommandResult(f"Please specify a location. Example: {ctx.prefix}weather New York", ok=False)
    resolved, unavailable = await _integration_key(ctx, "weather", "Weather", ctx.config.weather_api_key)
    if unavailable:
        return unavailable
    integration, api_key = resolved
    try:
        text = await ctx.integrations.weather(integration, api_key, " ".join(args))
    except IntegrationError as e:
        logger.error("Weather API error: %s", e)
        return CommandResult("Sorry, I couldn't retrieve the weather information. Please try again later.", ok=False)
    await ctx.storage.record_integration_usage(integration.id)
    return CommandResult(text)


async def cmd_translate(args: list[str], ctx: CommandContext) -> CommandResult:
    if len(args) < 2:
        return CommandResult(
            f"Please specify a target language and text. Example: {ctx.prefix}translate es Hello, how are you?",
            ok=False,
        )
    resolved, unavailable = await _integration_key(
        ctx, "translation", "Translation", ctx.config.translation_api_key
    )
    if unavailable:
        return unavailable
    integration, api_key = resolved
    try:
        text = await ctx.integrations.translate(integration, api_key, args[0].lower(), " ".join(args[1:]))
    except IntegrationError as e:
        logger.error("Translation API error: %s", e)
        return CommandResult("Sorry, I couldn't translate your text. Please try again later.", ok=False)
    await ctx.storage.record_integration_usage(integration.id)
    return CommandResult(text)


async def cmd_news(args: list[str], ctx: CommandContext) -> CommandResult:
    category = args[0].lower() if args else "general"
    if category not in NEWS_CATEGORIES:
        return CommandResult(
            f"Invalid category. Please choose from: {', '.join(NEWS_CATEGORIES)}", ok=False
        )
    resolved, unavailable = await _integration_key(ctx, "news", "News", ctx.config.news_api_key)
    if unavailable:
        return unavailable
    integration, api_key = resolved
    try:
        text = await ctx.integrations.news(integration, api_key, category)
    except IntegrationError as e:
        logger.error("News API error: %s", e)
        return CommandResult("Sorry, I couldn't retrieve the news. Please try again later.", ok=False)
    await ctx.storage.record_integration_usage(integration.id)
    return CommandResult(text)


async def cmd_remind(args: list[str], ctx: CommandContext) -> CommandResult:
    if len(args) < 2:
        return CommandResult(
            f"Please specify a time and message. Example: {ctx.prefix}remind 30 Check on the pizza",
            ok=False,
        )
    try:
        minutes = int(args[0])
    except ValueError:
        minutes = 0
    if not 1 <= minutes <= MAX_REMINDER_MINUTES:
        return CommandResult(f"Please provide a valid time in minutes (1-{MAX_REMINDER_MINUTES}).", ok=False)

    text = " ".join(args[1:])
    ctx.scheduler.schedule(
        Reminder(ctx.event.author_id, ctx.event.chat_id, text),
        timedelta(minutes=minutes),
    )
    return CommandResult(f'I\'ll remind you about "{text}" in {minutes} minute(s).')


async def cmd_stats(args: list[str], ctx: CommandContext) -> CommandResult:
    user_id = ctx.event.author_id
    active = await ctx.storage.get_active_conversation(user_id)
    total = await ctx.storage.count_conversations(user_id)
    actions = await ctx.storage.get_moderation_actions(user_id)

    lines = [
        "Your bot interaction statistics",
        f"Total conversations: {total}",
        f"Active conversations: {1 if active else 0}",
        f"Moderation actions: {len(actions)}",
    ]
    if ctx.settings.user_tracking and active is not None:
        lines.append(f"Current context length: {len(active.window)} messages in memory")
    return CommandResult("\n".join(lines))


async def cmd_sentiment(args: list[str], ctx: CommandContext) -> CommandResult:
    if not args:
        return CommandResult(f"Please give me some text. Example: {ctx.prefix}sentiment I love this!", ok=False)
    result = await ctx.responder.analyze_sentiment(" ".join(args))
    stars = "★" * result.rating + "☆" * (5 - result.rating)
    return CommandResult(f"Sentiment: {stars} ({result.rating}/5, confidence {result.confidence:.2f})")


async def cmd_reset(args: list[str], ctx: CommandContext) -> CommandResult:
    closed = await ctx.context.close(ctx.event.author_id)
    if not closed:
        return CommandResult("There is no active conversation to reset.", ok=False)
    return CommandResult("Conversation history cleared. Let's start fresh!")


# ---------------------------------------------------------------------------
# Admin commands
# ---------------------------------------------------------------------------

_ADMIN_ONLY = "This command is only available to administrators."


async def cmd_settings(args: list[str], ctx: CommandContext) -> CommandResult:
    if not ctx.is_admin:
        return CommandResult(_ADMIN_ONLY, ok=False)
    s = ctx.settings
    lines = [
        "Current settings:",
        f"context_awareness: {s.context_awareness}",
        f"auto_moderation: {s.auto_moderation}",
        f"context_size: {s.context_size}",
        f"nlp_model: {s.nlp_model}",
        f"temperature: {s.temperature}",
        f"max_tokens: {s.max_tokens}",
        f"user_tracking: {s.user_tracking}",
        f"debug_mode: {s.debug_mode}",
        f"nlp_state: {ctx.responder.availability.state.value}",
    ]
    return CommandResult("\n".join(lines))


async def cmd_set(args: list[str], ctx: CommandContext) -> CommandResult:
    if not ctx.is_admin:
        return CommandResult(_ADMIN_ONLY, ok=False)
    if len(args) < 2:
        return CommandResult(f"Usage: {ctx.prefix}set <key> <value>", ok=False)
    key, raw = args[0].lower(), " ".join(args[1:])
    try:
        value = parse_setting(key, raw)
    except ValueError as e:
        return CommandResult(f"Invalid setting: {e}", ok=False)

    await ctx.storage.set_setting(key, str(value))
    logger.info("Setting %s changed to %r by user_id=%s", key, value, ctx.event.author_id)
    if key == "context_size":
        await ctx.context.resize_all(value)
    return CommandResult(f"{key} set to {value}.")


async def cmd_integration(args: list[str], ctx: CommandContext) -> CommandResult:
    if not ctx.is_admin:
        return CommandResult(_ADMIN_ONLY, ok=False)
    if len(args) != 2 or args[1].lower() not in ("on", "off"):
        return CommandResult(f"Usage: {ctx.prefix}integration <weather|translation|news> on|off", ok=False)
    integration_type, active = args[0].lower(), args[1].lower() == "on"
    if not await ctx.storage.set_integration_active(integration_type, active):
        return CommandResult(f"Unknown integration: {integration_type}", ok=False)
    return CommandResult(f"{integration_type} integration {'enabled' if active else 'disabled'}.")


async def cmd_moderate(args: list[str], ctx: CommandContext) -> CommandResult:
    if not ctx.is_admin:
        return CommandResult(_ADMIN_ONLY, ok=False)
    usage = f"Usage: {ctx.prefix}moderate <user_id> <warn|mute|kick|ban> <reason>"
    if len(args) < 3:
        return CommandResult(usage, ok=False)
    try:
        user_id = int(args[0])
        action = ModerationType(args[1].lower())
    except ValueError:
        return CommandResult(usage, ok=False)
    if not await ctx.moderator.moderate_user(user_id, action, " ".join(args[2:])):
        return CommandResult("Failed to record moderation action.", ok=False)
    return CommandResult(f"Recorded {action.value} for user {user_id}.")


BUILTIN_COMMANDS = (
    Command("start", "Start talking to the bot", cmd_start),
    Command("help", "Show this help message", cmd_help),
    Command("weather", "Get weather for a location: weather [location]", cmd_weather),
    Command("translate", "Translate text: translate [targetLang] [text]", cmd_translate),
    Command("news", "Get latest news headlines: news [category]", cmd_news),
    Command("remind", "Set a reminder: remind [minutes] [message]", cmd_remind),
    Command("stats", "Show your interaction statistics with the bot", cmd_stats),
    Command("sentiment", "Rate the sentiment of a text: sentiment [text]", cmd_sentiment),
    Command("reset", "Forget the current conversation", cmd_reset),
    Command("settings", "Show bot settings (admin)", cmd_settings, admin_only=True),
    Command("set", "Change a bot setting: set [key] [value] (admin)", cmd_set, admin_only=True),
    Command("integration", "Enable or disable an integration (admin)", cmd_integration, admin_only=True),
    Command("moderate", "Record a moderation action (admin)", cmd_moderate, admin_only=True),
)


def build_registry(extra: Iterable[Command] = ()) -> CommandRegistry:
    return CommandRegistry((*BUILTIN_COMMANDS, *extra))
