import aiosqlite


async def get_or_create_user(
    db: aiosqlite.Connection,
    user_id: int,
    display_name: str | None = None,
) -> dict:
    await db.execute(
        """
        INSERT INTO users (user_id, display_name)
        VALUES (?, ?)
        ON CONFLICT(user_id) DO UPDATE SET
            display_name = COALESCE(excluded.display_name, users.display_name)
        """,
        (user_id, display_name),
    )
    await db.commit()

    cursor = await db.execute(
        "SELECT * FROM users WHERE user_id = ?", (user_id,)
    )
    row = await cursor.fetchone()
    return dict(row)
