SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS users (
        user_id INTEGER PRIMARY KEY,
        display_name TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS conversations (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        context TEXT NOT NULL DEFAULT '[]',
        active INTEGER NOT NULL DEFAULT 1,
        last_updated TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_conv_user_active
    ON conversations(user_id, active)
    """,
    """
    CREATE TABLE IF NOT EXISTS bot_settings (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS moderation_actions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        type TEXT NOT NULL CHECK(type IN ('warn', 'mute', 'kick', 'ban')),
        reason TEXT NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_moderation_user_id
    ON moderation_actions(user_id, created_at)
    """,
    """
    CREATE TABLE IF NOT EXISTS commands (
        name TEXT PRIMARY KEY,
        description TEXT NOT NULL,
        usage INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS api_integrations (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE,
        type TEXT NOT NULL UNIQUE,
        endpoint TEXT NOT NULL,
        auth_method TEXT NOT NULL,
        api_key TEXT,
        active INTEGER NOT NULL DEFAULT 1,
        usage INTEGER NOT NULL DEFAULT 0,
        monthly_limit INTEGER NOT NULL DEFAULT 1000,
        last_call TIMESTAMP,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
]

DEFAULT_COMMANDS = [
    ("weather", "Get weather for a location"),
    ("translate", "Translate text to another language"),
    ("news", "Get latest news headlines"),
    ("help", "Show help information"),
    ("remind", "Set a reminder"),
]

DEFAULT_INTEGRATIONS = [
    {
        "name": "Weather API",
        "type": "weather",
        "endpoint": "https://api.openweathermap.org/data/2.5/weather",
        "auth_method": "api-key",
        "monthly_limit": 1000,
    },
    {
        "name": "Translation API",
        "type": "translation",
        "endpoint": "https://translation.googleapis.com/language/translate/v2",
        "auth_method": "api-key",
        "monthly_limit": 500,
    },
    {
        "name": "News API",
        "type": "news",
        "endpoint": "https://newsapi.org/v2/top-headlines",
        "auth_method": "api-key",
        "monthly_limit": 500,
    },
]
