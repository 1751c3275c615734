import os

import aiosqlite

from assistbot.db.models import DEFAULT_COMMANDS, DEFAULT_INTEGRATIONS, SCHEMA


async def get_db(path: str) -> aiosqlite.Connection:
    db = await aiosqlite.connect(path)
    db.row_factory = aiosqlite.Row
    await db.execute("PRAGMA busy_timeout=5000")
    await db.execute("PRAGMA journal_mode=WAL")
    await db.execute("PRAGMA foreign_keys=ON")
    return db


async def init_db(path: str) -> None:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    db = await get_db(path)
    try:
        for statement in SCHEMA:
            await db.execute(statement)
        for name, description in DEFAULT_COMMANDS:
            await db.execute(
                "INSERT OR IGNORE INTO commands (name, description) VALUES (?, ?)",
                (name, description),
            )
        for integration in DEFAULT_INTEGRATIONS:
            await db.execute(
                """
                INSERT OR IGNORE INTO api_integrations
                    (name, type, endpoint, auth_method, monthly_limit)
                VALUES (:name, :type, :endpoint, :auth_method, :monthly_limit)
                """,
                integration,
            )
        await db.commit()
    finally:
        await db.close()
