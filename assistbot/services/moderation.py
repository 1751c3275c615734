"""Content-safety scores to moderation actions, and their enforcement."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Mapping

from assistbot.db.records import ModerationAction, ModerationType
from assistbot.db.storage import Storage
from assistbot.errors import AssistBotError, DeliveryError, EffectApplicationError
from assistbot.gateway import Gateway, MessageEvent

logger = logging.getLogger(__name__)

CATEGORIES = (
    "harassment",
    "harassment/threatening",
    "hate",
    "hate/threatening",
    "self-harm",
    "self-harm/instructions",
    "self-harm/intent",
    "sexual",
    "sexual/minors",
    "violence",
    "violence/graphic",
)

HIGH_SEVERITY = frozenset({
    "sexual/minors",
    "violence/graphic",
    "hate/threatening",
    "self-harm/intent",
})

MUTE_THRESHOLD = 0.9
WARN_THRESHOLD = 0.7
MUTE_DURATION_MS = 10 * 60 * 1000


@dataclass(frozen=True)
class CategoryScore:
    flagged: bool
    score: float


@dataclass(frozen=True)
class ModerationDecision:
    action: ModerationType
    flagged: tuple[str, ...] = ()
    max_score: float = 0.0

    @property
    def reason(self) -> str:
        return ", ".join(self.flagged)

    @property
    def is_action(self) -> bool:
        return self.action is not ModerationType.NONE


NO_ACTION = ModerationDecision(ModerationType.NONE)

Scorer = Callable[[str], Awaitable[Mapping[str, CategoryScore]]]


def classify(scores: Mapping[str, CategoryScore]) -> ModerationDecision:
    """Severity policy. Only flagged categories contribute to the max score."""
    flagged = tuple(name for name in CATEGORIES if name in scores and scores[name].flagged)
    # Categories outside the known taxonomy still count if the scorer flags them
    flagged += tuple(sorted(
        name for name, s in scores.items() if s.flagged and name not in CATEGORIES
    ))
    if not flagged:
        return NO_ACTION

    max_score = max(scores[name].score for name in flagged)
    high = any(name in HIGH_SEVERITY for name in flagged)

    if high or max_score > MUTE_THRESHOLD:
        action = ModerationType.MUTE
    elif max_score > WARN_THRESHOLD:
        action = ModerationType.WARN
    else:
        action = ModerationType.NONE
    return ModerationDecision(action, flagged, max_score)


def _notice(action: ModerationType, reason: str) -> str | None:
    detail = f"Your message was removed for: {reason}."
    if action is ModerationType.WARN:
        return f"⚠️ Warning: {detail}"
    if action is ModerationType.MUTE:
        return f"\U0001f507 You have been muted for 10 minutes. {detail}"
    return None


@dataclass
class Moderator:
    scorer: Scorer
    storage: Storage
    mute_duration_ms: int = field(default=MUTE_DURATION_MS)

    async def assess(self, content: str) -> ModerationDecision:
        if not content.strip():
            return NO_ACTION
        try:
            scores = await self.scorer(content)
        except AssistBotError as e:
            logger.warning("Moderation scorer failed, letting message through: %s", e)
            return NO_ACTION

        decision = classify(scores)
        if decision.flagged and not decision.is_action:
            logger.info(
                "Monitoring flagged content (%s, max %.2f), no action",
                decision.reason, decision.max_score,
            )
        return decision

    async def enforce(
        self,
        event: MessageEvent,
        decision: ModerationDecision,
        gateway: Gateway,
    ) -> None:
        """Record the action, then apply its side effects best-effort."""
        if not decision.is_action:
            return
        await self.storage.record_moderation_action(
            ModerationAction(event.author_id, decision.action, decision.reason)
        )
        logger.info(
            "Moderation %s for user %s: %s",
            decision.action.value, event.author_id, decision.reason,
        )
        await self.apply_effects(decision.action, decision.reason, gateway)

    async def apply_effects(
        self,
        action: ModerationType,
        reason: str,
        gateway: Gateway,
    ) -> None:
        try:
            await gateway.delete_message()
        except (EffectApplicationError, DeliveryError) as e:
            logger.warning("Failed to delete moderated message: %s", e)

        try:
            if action is ModerationType.MUTE:
                await gateway.timeout_author(self.mute_duration_ms, reason)
            elif action is ModerationType.KICK:
                await gateway.kick_author(reason)
            elif action is ModerationType.BAN:
                await gateway.ban_author(reason)
        except EffectApplicationError as e:
            logger.warning("Failed to apply %s: %s", action.value, e)

        notice = _notice(action, reason)
        if notice is None:
            return
        try:
            await gateway.reply_privately(notice)
        except DeliveryError as e:
            logger.warning("Failed to deliver %s notice: %s", action.value, e)

    async def moderate_user(self, user_id: int, action: ModerationType, reason: str) -> bool:
        """Record a manual action without touching the chat."""
        if action is ModerationType.NONE:
            return False
        try:
            await self.storage.record_moderation_action(ModerationAction(user_id, action, reason))
        except Exception:
            logger.exception("Failed to record manual moderation for user %s", user_id)
            return False
        return True
