import aiosqlite


async def increment_usage(
    db: aiosqlite.Connection,
    name: str,
    description: str = "",
) -> int:
    await db.execute(
        """
        INSERT INTO commands (name, description, usage)
        VALUES (?, ?, 1)
        ON CONFLICT(name) DO UPDATE SET usage = commands.usage + 1
        """,
        (name, description),
    )
    await db.commit()
    cursor = await db.execute("SELECT usage FROM commands WHERE name = ?", (name,))
    row = await cursor.fetchone()
    return row["usage"]


async def get_usage(
    db: aiosqlite.Connection,
    name: str,
) -> int:
    cursor = await db.execute("SELECT usage FROM commands WHERE name = ?", (name,))
    row = await cursor.fetchone()
    return row["usage"] if row else 0
