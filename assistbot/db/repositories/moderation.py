import aiosqlite


async def add_action(
    db: aiosqlite.Connection,
    user_id: int,
    action_type: str,
    reason: str,
) -> None:
    await db.execute(
        """
        INSERT INTO moderation_actions (user_id, type, reason)
        VALUES (?, ?, ?)
        """,
        (user_id, action_type, reason),
    )
    await db.commit()


async def get_actions(
    db: aiosqlite.Connection,
    user_id: int,
) -> list[dict]:
    cursor = await db.execute(
        """
        SELECT user_id, type, reason, created_at
        FROM moderation_actions
        WHERE user_id = ?
        ORDER BY id ASC
        """,
        (user_id,),
    )
    rows = await cursor.fetchall()
    return [dict(r) for r in rows]
