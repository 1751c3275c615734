from dataclasses import dataclass, field
import os

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Config:
    telegram_bot_token: str | None
    openai_api_key: str | None
    openai_base_url: str = "https://api.openai.com/v1"
    db_path: str = "data/assistbot.db"
    command_prefix: str = "/"
    admin_ids: frozenset[int] = field(default_factory=frozenset)
    # None means "ask Telegram" (getMe().can_read_all_group_messages)
    privileged_content: bool | None = None
    weather_api_key: str | None = None
    news_api_key: str | None = None
    translation_api_key: str | None = None
    llm_timeout: float = 60.0


def _parse_admin_ids(raw: str | None) -> frozenset[int]:
    if not raw:
        return frozenset()
    ids = set()
    for part in raw.split(","):
        part = part.strip()
        if part.lstrip("-").isdigit():
            ids.add(int(part))
    return frozenset(ids)


def _parse_tristate(raw: str | None) -> bool | None:
    if raw is None:
        return None
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    return None


def get_config() -> Config:
    return Config(
        telegram_bot_token=os.getenv("TELEGRAM_BOT_TOKEN"),
        openai_api_key=os.getenv("OPENAI_API_KEY"),
        openai_base_url=os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1").rstrip("/"),
        db_path=os.getenv("DB_PATH", "data/assistbot.db"),
        command_prefix=os.getenv("COMMAND_PREFIX", "/"),
        admin_ids=_parse_admin_ids(os.getenv("ADMIN_IDS")),
        privileged_content=_parse_tristate(os.getenv("PRIVILEGED_CONTENT")),
        weather_api_key=os.getenv("WEATHER_API_KEY"),
        news_api_key=os.getenv("NEWS_API_KEY"),
        translation_api_key=os.getenv("TRANSLATION_API_KEY"),
        llm_timeout=float(os.getenv("LLM_TIMEOUT", "60")),
    )


config = get_config()
