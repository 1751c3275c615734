import aiosqlite


async def get_all_settings(db: aiosqlite.Connection) -> dict[str, str]:
    cursor = await db.execute("SELECT key, value FROM bot_settings")
    rows = await cursor.fetchall()
    return {r["key"]: r["value"] for r in rows}


async def set_setting(
    db: aiosqlite.Connection,
    key: str,
    value: str,
) -> None:
    await db.execute(
        """
        INSERT INTO bot_settings (key, value)
        VALUES (?, ?)
        ON CONFLICT(key) DO UPDATE SET value = excluded.value
        """,
        (key, value),
    )
    await db.commit()
