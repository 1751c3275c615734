class AssistBotError(Exception):
    """Base class for errors raised by assistbot."""


class ConfigurationError(AssistBotError):
    """A credential or setting required at startup is missing or invalid."""


class BackendError(AssistBotError):
    """The generation or moderation backend failed."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class BackendQuotaError(BackendError):
    """Account quota exhausted. Demotes the responder to fallback."""


class BackendRateLimitError(BackendError):
    """Request was rate limited. Demotes the responder to fallback."""


class BackendTransientError(BackendError):
    """Timeouts, 5xx, malformed payloads. No state change."""


class EffectApplicationError(AssistBotError):
    """A moderation side effect (delete, timeout, kick, ban) could not be applied."""


class DeliveryError(AssistBotError):
    """A reply or private notice could not be delivered."""
