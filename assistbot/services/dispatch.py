"""Routes one inbound message to exactly one handling path."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from assistbot.config import Config
from assistbot.db.records import BotSettings
from assistbot.db.storage import Storage
from assistbot.errors import DeliveryError
from assistbot.gateway import Gateway, MessageEvent
from assistbot.services.commands import CommandContext, CommandRegistry
from assistbot.services.context import ContextManager
from assistbot.services.integrations import IntegrationClient
from assistbot.services.moderation import ModerationDecision, Moderator
from assistbot.services.nlp import NLPResponder
from assistbot.services.scheduler import Scheduler

logger = logging.getLogger(__name__)

GENERIC_APOLOGY = "Sorry, I encountered an error processing your request. Please try again later."
LIMITED_CAPABILITY_REPLY = (
    "Hi! I can't read message contents in this chat yet, so I can't answer "
    "properly. Ask an admin to give me access to group messages."
)


class RouteKind(str, Enum):
    IGNORE = "ignore"
    COMMAND = "command"
    MODERATE = "moderate"
    RESPOND = "respond"


@dataclass(frozen=True)
class Route:
    kind: RouteKind
    name: str | None = None
    args: tuple[str, ...] = ()
    decision: ModerationDecision | None = None
    # Respond without reading the message body
    limited: bool = False


IGNORE = Route(RouteKind.IGNORE)


def parse_command(content: str, prefix: str) -> tuple[str, tuple[str, ...]] | None:
    """Split ``content`` into (name, args) if it is a prefixed command."""
    if not prefix or not content.startswith(prefix):
        return None
    tokens = content[len(prefix):].split()
    if not tokens:
        return None
    # Telegram addresses commands in groups as /name@botname
    name = tokens[0].split("@", 1)[0].lower()
    if not name:
        return None
    return name, tuple(tokens[1:])


@dataclass
class Dispatcher:
    config: Config
    storage: Storage
    registry: CommandRegistry
    moderator: Moderator
    responder: NLPResponder
    context: ContextManager
    scheduler: Scheduler
    integrations: IntegrationClient
    has_privileged_content: bool = True
    _default_settings: BotSettings = field(default_factory=BotSettings, repr=False)

    async def route(self, event: MessageEvent, settings: BotSettings) -> Route:
        if event.is_bot:
            return IGNORE

        addressed = event.is_mentioned or event.is_dm
        if not self.has_privileged_content:
            return Route(RouteKind.RESPOND, limited=True) if addressed else IGNORE

        command = parse_command(event.content, self.config.command_prefix)
        if command is not None:
            name, args = command
            return Route(RouteKind.COMMAND, name=name, args=args)

        if settings.auto_moderation:
            decision = await self.moderator.assess(event.content)
            if decision.is_action:
                return Route(RouteKind.MODERATE, decision=decision)

        if addressed:
            return Route(RouteKind.RESPOND)
        return IGNORE

    async def handle(self, event: MessageEvent, gateway: Gateway) -> None:
        """Process one event end to end. Never raises."""
        if event.is_bot:
            return
        try:
            await self.storage.ensure_user(event.author_id, event.author_name)
        except Exception:
            logger.exception("User bookkeeping failed for %s, continuing", event.author_id)

        try:
            try:
                settings = await self.storage.get_settings()
            except Exception:
                logger.exception("Could not load settings, using defaults")
                settings = self._default_settings

            route = await self.route(event, settings)
            logger.debug("Route for user %s: %s", event.author_id, route.kind.value)

            if route.kind is RouteKind.COMMAND:
                await self._run_command(event, route, settings, gateway)
            elif route.kind is RouteKind.MODERATE:
                await self.moderator.enforce(event, route.decision, gateway)
            elif route.kind is RouteKind.RESPOND:
                await self._respond(event, route, gateway)
        except Exception:
            logger.exception("Error processing message from user %s", event.author_id)
            await self._apologize(gateway)

    async def _respond(self, event: MessageEvent, route: Route, gateway: Gateway) -> None:
        if route.limited:
            reply = LIMITED_CAPABILITY_REPLY
        else:
            reply = await self.responder.respond(event.author_id, event.content)
        await self._deliver(gateway, reply)

    async def _run_command(
        self,
        event: MessageEvent,
        route: Route,
        settings: BotSettings,
        gateway: Gateway,
    ) -> None:
        command = self.registry.resolve(route.name)
        if command is None:
            # Unknown commands are treated as conversation
            await self._respond(event, Route(RouteKind.RESPOND), gateway)
            return

        ctx = CommandContext(
            event=event,
            settings=settings,
            storage=self.storage,
            context=self.context,
            responder=self.responder,
            moderator=self.moderator,
            scheduler=self.scheduler,
            integrations=self.integrations,
            registry=self.registry,
            config=self.config,
        )
        result = await command.execute(list(route.args), ctx)
        await self._deliver(gateway, result.text)

        if result.ok:
            try:
                await self.storage.record_command_usage(command.name, command.description)
            except Exception:
                logger.exception("Failed to record usage for command %s", command.name)

    async def _deliver(self, gateway: Gateway, text: str) -> None:
        try:
            await gateway.reply(text)
        except DeliveryError as e:
            logger.warning("Reply could not be delivered: %s", e)

    async def _apologize(self, gateway: Gateway) -> None:
        try:
            await gateway.reply(GENERIC_APOLOGY)
        except Exception:
            logger.exception("Failed to send error message")
