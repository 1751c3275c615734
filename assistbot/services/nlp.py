"""Reply generation with a one-way Live -> Fallback availability switch.

While Live, replies come from the remote backend. The first quota or
rate-limit failure demotes the process to Fallback for good; from then on
replies come from a deterministic keyword matcher and nothing is sent to the
backend.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Protocol

from assistbot.db.records import BotSettings, Role
from assistbot.db.storage import Storage
from assistbot.errors import BackendError, BackendQuotaError, BackendRateLimitError
from assistbot.services.context import SYSTEM_INSTRUCTION, ContextManager, format_for_generation
from assistbot.services.llm import parse_json_object

logger = logging.getLogger(__name__)

APOLOGY = "I'm sorry, I'm having trouble processing your request right now. Please try again later."
EMPTY_REPLY = "I'm sorry, I couldn't generate a response."

SENTIMENT_PROMPT = (
    "You are a sentiment analysis expert. Analyze the sentiment of the text and "
    "provide a rating from 1 to 5 stars and a confidence score between 0 and 1. "
    'Respond with JSON in this format: {"rating": number, "confidence": number}'
)


class Backend(Protocol):
    def complete(
        self,
        model: str,
        messages: list[dict],
        temperature: float,
        max_tokens: int,
        *,
        json_mode: bool = False,
    ) -> Awaitable[str]:
        ...


class NLPState(str, Enum):
    LIVE = "live"
    FALLBACK = "fallback"


class Availability:
    """Process-wide backend availability. The only transition is Live -> Fallback."""

    def __init__(self, state: NLPState = NLPState.LIVE) -> None:
        self._state = state

    @property
    def state(self) -> NLPState:
        return self._state

    @property
    def is_live(self) -> bool:
        return self._state is NLPState.LIVE

    def demote(self, reason: str) -> bool:
        """Switch to Fallback. Returns True only for the call that made the switch."""
        # No await between check and set: concurrent tasks cannot interleave here
        if self._state is NLPState.FALLBACK:
            return False
        self._state = NLPState.FALLBACK
        logger.warning("Switching to fallback mode: %s", reason)
        return True


# ---------------------------------------------------------------------------
# Deterministic fallback
# ---------------------------------------------------------------------------

_FALLBACK_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("help", "command"),
     "I can help you with various tasks! Try commands like /help, /weather, "
     "/remind, or just chat with me naturally."),
    (("hello", "hi ", "hey "),
     "Hello there! I'm your AI assistant bot. How can I help you today?"),
    (("weather",),
     "I'd like to provide weather information, but I'm currently running in "
     "offline mode. Try the /weather command instead."),
    (("joke", "funny"),
     "Why don't scientists trust atoms? Because they make up everything!"),
    (("thank",),
     "You're welcome! Let me know if you need anything else."),
    (("telegram",),
     "Telegram is a cloud-based messaging app. Besides private chats it "
     "supports groups, channels and bots like me."),
    (("bot", "ai"),
     "I'm an AI assistant designed to help with conversations, answer "
     "questions, and assist with various tasks. I'm currently running with "
     "limited functionality."),
)

OFFLINE_NOTICE = (
    "I'm currently operating in offline mode with limited functionality. "
    "My full AI capabilities will return once the language model is available again."
)

_EXACT_GREETINGS = frozenset({"hi", "hey", "hello"})


def fallback_reply(prompt: str) -> str:
    """Canned reply for ``prompt``. Pure and total."""
    lowered = prompt.lower().strip()
    if lowered in _EXACT_GREETINGS:
        return _FALLBACK_RULES[1][1]
    for keywords, reply in _FALLBACK_RULES:
        if any(k in lowered for k in keywords):
            return reply
    return OFFLINE_NOTICE


POSITIVE_WORDS = (
    "good", "great", "amazing", "excellent", "wonderful", "fantastic", "awesome",
    "happy", "joy", "love", "like", "best", "thank", "thanks", "appreciate",
    "perfect", "brilliant", "outstanding",
)

NEGATIVE_WORDS = (
    "bad", "terrible", "awful", "horrible", "worst", "hate", "dislike", "sad",
    "angry", "annoyed", "disappointed", "poor", "fail", "sucks", "stupid",
    "useless", "broken",
)


@dataclass(frozen=True)
class Sentiment:
    rating: int
    confidence: float


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def fallback_sentiment(text: str) -> Sentiment:
    lowered = text.lower()
    positive = sum(1 for w in POSITIVE_WORDS if w in lowered)
    negative = sum(1 for w in NEGATIVE_WORDS if w in lowered)

    if positive == negative:
        return Sentiment(3, 0.5)

    word_count = max(1, len(text.split()))
    confidence = min(0.7, (positive + negative) / word_count) + 0.1
    shift = _round_half_up(abs(positive - negative) / 2)
    if positive > negative:
        rating = min(5, 3 + shift)
    else:
        rating = max(1, 3 - shift)
    return Sentiment(rating, confidence)


def _clamp_sentiment(data: dict) -> Sentiment:
    raw_rating = float(data["rating"])
    confidence = float(data["confidence"])
    if math.isnan(raw_rating) or math.isnan(confidence):
        raise ValueError("sentiment value is NaN")
    if math.isinf(raw_rating):
        rating = 5 if raw_rating > 0 else 1
    else:
        rating = max(1, min(5, _round_half_up(raw_rating)))
    return Sentiment(rating, max(0.0, min(1.0, confidence)))


# ---------------------------------------------------------------------------
# Responder
# ---------------------------------------------------------------------------

class NLPResponder:
    def __init__(
        self,
        backend: Backend,
        context: ContextManager,
        storage: Storage,
        availability: Availability | None = None,
    ) -> None:
        self._backend = backend
        self._context = context
        self._storage = storage
        self.availability = availability or Availability()

    def _demote_if_exhausted(self, error: BackendError) -> bool:
        if isinstance(error, (BackendQuotaError, BackendRateLimitError)):
            self.availability.demote(f"{type(error).__name__}: {error}")
            return True
        return False

    async def respond(self, user_id: int, prompt: str) -> str:
        settings = await self._storage.get_settings()
        await self._context.append_user(user_id, prompt, settings)

        if not self.availability.is_live:
            reply = fallback_reply(prompt)
        else:
            window = await self._context.get(user_id, settings)
            messages = format_for_generation(window)
            if not window:
                # Context awareness off: still send the current turn
                messages.append({"role": Role.USER.value, "content": prompt})
            try:
                reply = await self._backend.complete(
                    settings.nlp_model, messages, settings.temperature, settings.max_tokens
                )
                reply = reply or EMPTY_REPLY
            except BackendError as e:
                if not self._demote_if_exhausted(e):
                    logger.error("Backend failed for user %s: %s", user_id, e)
                    return APOLOGY
                reply = fallback_reply(prompt)

        await self._context.append_assistant(user_id, reply, settings)
        self._debug_log(settings, user_id, prompt, reply)
        return reply

    async def generate_standalone(self, prompt: str) -> str:
        if not self.availability.is_live:
            return fallback_reply(prompt)

        settings = await self._storage.get_settings()
        messages = [
            {"role": Role.SYSTEM.value, "content": SYSTEM_INSTRUCTION},
            {"role": Role.USER.value, "content": prompt},
        ]
        try:
            reply = await self._backend.complete(
                settings.nlp_model, messages, settings.temperature, settings.max_tokens
            )
        except BackendError as e:
            if not self._demote_if_exhausted(e):
                logger.error("Backend failed for standalone prompt: %s", e)
                return APOLOGY
            return fallback_reply(prompt)
        return reply or EMPTY_REPLY

    async def analyze_sentiment(self, text: str) -> Sentiment:
        if not self.availability.is_live:
            return fallback_sentiment(text)

        settings = await self._storage.get_settings()
        messages = [
            {"role": Role.SYSTEM.value, "content": SENTIMENT_PROMPT},
            {"role": Role.USER.value, "content": text},
        ]
        try:
            raw = await self._backend.complete(
                settings.nlp_model, messages, 0.0, 50, json_mode=True
            )
        except BackendError as e:
            if not self._demote_if_exhausted(e):
                logger.error("Sentiment analysis failed: %s", e)
            return fallback_sentiment(text)

        try:
            return _clamp_sentiment(parse_json_object(raw))
        except (ValueError, KeyError, TypeError):
            logger.warning("Unparseable sentiment output: %r", raw[:200])
            return fallback_sentiment(text)

    def _debug_log(self, settings: BotSettings, user_id: int, prompt: str, reply: str) -> None:
        if settings.debug_mode:
            logger.info(
                "NLP request user=%s state=%s prompt=%r reply=%r",
                user_id, self.availability.state.value, prompt, reply,
            )
