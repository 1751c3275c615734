"""
Tests for message routing and end-to-end handling.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from assistbot.db.records import BotSettings, ModerationType
from assistbot.services.commands import Command, CommandResult, build_registry
from assistbot.services.context import ContextManager
from assistbot.services.dispatch import (
    GENERIC_APOLOGY,
    LIMITED_CAPABILITY_REPLY,
    Dispatcher,
    RouteKind,
    parse_command,
)
from assistbot.services.moderation import CategoryScore, Moderator
from assistbot.services.scheduler import Scheduler

from conftest import FakeGateway, make_event


@pytest.fixture
def scorer():
    scorer = AsyncMock()
    scorer.return_value = {"harassment": CategoryScore(False, 0.01)}
    return scorer


@pytest.fixture
def responder():
    responder = MagicMock()
    responder.respond = AsyncMock(return_value="nlp reply")
    return responder


@pytest_asyncio.fixture
async def dispatcher(config, storage, scorer, responder, clock):
    return Dispatcher(
        config=config,
        storage=storage,
        registry=build_registry(),
        moderator=Moderator(scorer, storage),
        responder=responder,
        context=ContextManager(storage, clock=clock),
        scheduler=Scheduler(AsyncMock(), clock=clock),
        integrations=MagicMock(),
    )


class TestParseCommand:
    def test_lowercases_name_and_splits_args(self):
        assert parse_command("/WeAther  New   York", "/") == ("weather", ("New", "York"))

    def test_strips_bot_username(self):
        assert parse_command("/help@my_bot stats", "/") == ("help", ("stats",))

    def test_not_a_command(self):
        assert parse_command("hello /help", "/") is None

    def test_bare_prefix(self):
        assert parse_command("/   ", "/") is None

    def test_custom_prefix(self):
        assert parse_command("!remind 5 tea", "!") == ("remind", ("5", "tea"))


class TestRoute:
    @pytest.mark.asyncio
    async def test_bot_author_ignored(self, dispatcher):
        route = await dispatcher.route(make_event("/help", is_bot=True, is_dm=True), BotSettings())
        assert route.kind is RouteKind.IGNORE

    @pytest.mark.asyncio
    async def test_command(self, dispatcher):
        route = await dispatcher.route(make_event("/news sports"), BotSettings())
        assert (route.kind, route.name, route.args) == (RouteKind.COMMAND, "news", ("sports",))

    @pytest.mark.asyncio
    async def test_commands_are_not_moderated(self, dispatcher, scorer):
        await dispatcher.route(make_event("/help"), BotSettings())
        scorer.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_moderation_is_terminal(self, dispatcher, scorer):
        scorer.return_value = {"harassment": CategoryScore(True, 0.95)}
        route = await dispatcher.route(make_event("insult", is_mentioned=True), BotSettings())
        assert route.kind is RouteKind.MODERATE
        assert route.decision.action is ModerationType.MUTE

    @pytest.mark.asyncio
    async def test_moderation_skipped_when_disabled(self, dispatcher, scorer):
        scorer.return_value = {"harassment": CategoryScore(True, 0.95)}
        route = await dispatcher.route(make_event("insult", is_dm=True), BotSettings(auto_moderation=False))
        assert route.kind is RouteKind.RESPOND
        scorer.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("mentioned,dm,expected", [
        (True, False, RouteKind.RESPOND),
        (False, True, RouteKind.RESPOND),
        (False, False, RouteKind.IGNORE),
    ])
    async def test_addressed_messages_get_replies(self, dispatcher, mentioned, dm, expected):
        route = await dispatcher.route(make_event("hey", is_mentioned=mentioned, is_dm=dm), BotSettings())
        assert route.kind is expected


class TestWithoutPrivilegedContent:
    @pytest.mark.asyncio
    async def test_dm_always_responds_even_with_prefix(self, dispatcher, scorer):
        dispatcher.has_privileged_content = False
        route = await dispatcher.route(make_event("/help", is_dm=True), BotSettings())
        assert route.kind is RouteKind.RESPOND
        assert route.limited
        scorer.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unaddressed_is_ignored(self, dispatcher):
        dispatcher.has_privileged_content = False
        route = await dispatcher.route(make_event("/help"), BotSettings())
        assert route.kind is RouteKind.IGNORE

    @pytest.mark.asyncio
    async def test_limited_reply_uses_template(self, dispatcher, responder):
        dispatcher.has_privileged_content = False
        gateway = FakeGateway()
        await dispatcher.handle(make_event("secret", is_mentioned=True), gateway)
        assert gateway.replies == [LIMITED_CAPABILITY_REPLY]
        responder.respond.assert_not_awaited()


class TestHandle:
    @pytest.mark.asyncio
    async def test_respond_replies_with_nlp_text(self, dispatcher, responder):
        gateway = FakeGateway()
        await dispatcher.handle(make_event("hi there", is_dm=True), gateway)
        assert gateway.replies == ["nlp reply"]
        responder.respond.assert_awaited_once_with(42, "hi there")

    @pytest.mark.asyncio
    async def test_registers_new_user(self, dispatcher, storage):
        await dispatcher.handle(make_event("nothing"), FakeGateway())
        user = await storage.ensure_user(42)
        assert user["display_name"] == "Tester"

    @pytest.mark.asyncio
    async def test_bookkeeping_failure_does_not_abort(self, dispatcher, storage):
        storage.ensure_user = AsyncMock(side_effect=RuntimeError("db locked"))
        gateway = FakeGateway()
        await dispatcher.handle(make_event("hi", is_dm=True), gateway)
        assert gateway.replies == ["nlp reply"]

    @pytest.mark.asyncio
    async def test_unknown_command_goes_to_responder(self, dispatcher, responder):
        gateway = FakeGateway()
        await dispatcher.handle(make_event("/dance now"), gateway)
        responder.respond.assert_awaited_once_with(42, "/dance now")
        assert gateway.replies == ["nlp reply"]

    @pytest.mark.asyncio
    async def test_route_failure_is_apologized(self, dispatcher, responder):
        responder.respond.side_effect = RuntimeError("boom")
        gateway = FakeGateway()
        await dispatcher.handle(make_event("hi", is_dm=True), gateway)
        assert gateway.replies == [GENERIC_APOLOGY]

    @pytest.mark.asyncio
    async def test_undeliverable_apology_is_swallowed(self, dispatcher, responder):
        responder.respond.side_effect = RuntimeError("boom")
        gateway = FakeGateway(fail=("reply",))
        await dispatcher.handle(make_event("hi", is_dm=True), gateway)

    @pytest.mark.asyncio
    async def test_command_handler_failure_is_apologized(self, dispatcher, storage):
        async def explode(args, ctx):
            raise ValueError("bad handler")

        dispatcher.registry = build_registry([Command("explode", "Always fails", explode)])
        gateway = FakeGateway()
        await dispatcher.handle(make_event("/explode"), gateway)
        assert gateway.replies == [GENERIC_APOLOGY]
        assert await storage.get_command_usage("explode") == 0

    @pytest.mark.asyncio
    async def test_moderated_message_is_not_answered(self, dispatcher, scorer, responder, storage):
        scorer.return_value = {"harassment": CategoryScore(True, 0.75)}
        gateway = FakeGateway()
        await dispatcher.handle(make_event("rude", is_mentioned=True), gateway)

        responder.respond.assert_not_awaited()
        assert gateway.replies == []
        assert gateway.called("delete_message")
        actions = await storage.get_moderation_actions(42)
        assert [a.type for a in actions] == [ModerationType.WARN]


class TestUsageCounting:
    @pytest.mark.asyncio
    async def test_successful_command_counts(self, dispatcher, storage):
        await dispatcher.handle(make_event("/help"), FakeGateway())
        await dispatcher.handle(make_event("/HELP"), FakeGateway())
        assert await storage.get_command_usage("help") == 2

    @pytest.mark.asyncio
    async def test_unsuccessful_command_does_not_count(self, dispatcher, storage):
        async def refuse(args, ctx):
            return CommandResult("nope", ok=False)

        dispatcher.registry = build_registry([Command("refuse", "Refuses", refuse)])
        gateway = FakeGateway()
        await dispatcher.handle(make_event("/refuse"), gateway)
        assert gateway.replies == ["nope"]
        assert await storage.get_command_usage("refuse") == 0


class TestInactiveIntegrationEndToEnd:
    @pytest.mark.asyncio
    async def test_weather_with_inactive_integration(self, dispatcher, storage, scorer, responder):
        await storage.set_integration_active("weather", False)
        gateway = FakeGateway()

        await dispatcher.handle(make_event("/weather Paris", is_mentioned=True), gateway)

        assert gateway.replies == ["Weather service is currently unavailable."]
        assert await storage.get_moderation_actions(42) == []
        scorer.assert_not_awaited()
        responder.respond.assert_not_awaited()
        dispatcher.integrations.weather.assert_not_called()
