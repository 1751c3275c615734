import aiosqlite


async def get_active(
    db: aiosqlite.Connection,
    user_id: int,
) -> dict | None:
    cursor = await db.execute(
        """
        SELECT id, user_id, context, active, last_updated
        FROM conversations
        WHERE user_id = ? AND active = 1
        ORDER BY id DESC
        LIMIT 1
        """,
        (user_id,),
    )
    row = await cursor.fetchone()
    return dict(row) if row else None


async def create(
    db: aiosqlite.Connection,
    user_id: int,
) -> dict:
    cursor = await db.execute(
        "INSERT INTO conversations (user_id, context, active) VALUES (?, '[]', 1)",
        (user_id,),
    )
    await db.commit()
    cursor = await db.execute(
        "SELECT id, user_id, context, active, last_updated FROM conversations WHERE id = ?",
        (cursor.lastrowid,),
    )
    row = await cursor.fetchone()
    return dict(row)


async def update_context(
    db: aiosqlite.Connection,
    conversation_id: int,
    context_json: str,
) -> None:
    await db.execute(
        """
        UPDATE conversations
        SET context = ?, last_updated = CURRENT_TIMESTAMP
        WHERE id = ?
        """,
        (context_json, conversation_id),
    )
    await db.commit()


async def close(
    db: aiosqlite.Connection,
    conversation_id: int,
) -> bool:
    cursor = await db.execute(
        "UPDATE conversations SET active = 0 WHERE id = ? AND active = 1",
        (conversation_id,),
    )
    await db.commit()
    return cursor.rowcount > 0


async def count_for_user(
    db: aiosqlite.Connection,
    user_id: int,
) -> int:
    cursor = await db.execute(
        "SELECT COUNT(*) FROM conversations WHERE user_id = ?", (user_id,)
    )
    row = await cursor.fetchone()
    return row[0]


async def active_user_ids(db: aiosqlite.Connection) -> list[int]:
    cursor = await db.execute(
        "SELECT DISTINCT user_id FROM conversations WHERE active = 1"
    )
    rows = await cursor.fetchall()
    return [r["user_id"] for r in rows]
