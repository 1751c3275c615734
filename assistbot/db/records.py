"""Typed views over the rows stored by the repositories."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


@dataclass(frozen=True)
class ContextMessage:
    role: Role
    content: str
    timestamp: datetime

    def to_dict(self) -> dict:
        return {
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> ContextMessage:
        return cls(
            role=Role(data["role"]),
            content=data["content"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )


@dataclass
class Conversation:
    id: int
    user_id: int
    window: list[ContextMessage] = field(default_factory=list)
    active: bool = True
    last_updated: str | None = None


@dataclass(frozen=True)
class BotSettings:
    context_awareness: bool = True
    auto_moderation: bool = True
    context_size: int = 5
    nlp_model: str = "gpt-4o"
    temperature: float = 0.7
    max_tokens: int = 150
    user_tracking: bool = False
    debug_mode: bool = False

    @classmethod
    def from_mapping(cls, values: dict[str, str]) -> BotSettings:
        """Build a snapshot from raw key/value strings, ignoring unparseable values."""
        kwargs = {}
        for f in fields(cls):
            raw = values.get(f.name)
            if raw is None:
                continue
            try:
                kwargs[f.name] = parse_setting(f.name, raw)
            except ValueError:
                continue
        return cls(**kwargs)


_BOOL_TRUE = ("1", "true", "yes", "on")
_BOOL_FALSE = ("0", "false", "no", "off")


def parse_setting(key: str, raw: str) -> bool | int | float | str:
    """Parse a raw string into the type of the BotSettings field ``key``.

    Raises ValueError for unknown keys or values that do not fit the field.
    """
    defaults = BotSettings()
    if not hasattr(defaults, key):
        raise ValueError(f"unknown setting: {key}")
    current = getattr(defaults, key)
    value = raw.strip()
    if isinstance(current, bool):
        if value.lower() in _BOOL_TRUE:
            return True
        if value.lower() in _BOOL_FALSE:
            return False
        raise ValueError(f"{key} expects true/false, got {raw!r}")
    if isinstance(current, int):
        number = int(value)
        if key == "context_size" and number < 1:
            raise ValueError("context_size must be at least 1")
        if key == "max_tokens" and number < 1:
            raise ValueError("max_tokens must be at least 1")
        return number
    if isinstance(current, float):
        number = float(value)
        if not 0.0 <= number <= 2.0:
            raise ValueError("temperature must be between 0 and 2")
        return number
    if not value:
        raise ValueError(f"{key} must not be empty")
    return value


class ModerationType(str, Enum):
    NONE = "none"
    WARN = "warn"
    MUTE = "mute"
    KICK = "kick"
    BAN = "ban"


@dataclass(frozen=True)
class ModerationAction:
    user_id: int
    type: ModerationType
    reason: str
    created_at: str | None = None


@dataclass(frozen=True)
class ApiIntegration:
    id: int
    name: str
    type: str
    endpoint: str
    api_key: str | None
    active: bool
    usage: int
    monthly_limit: int
    last_call: str | None = None
