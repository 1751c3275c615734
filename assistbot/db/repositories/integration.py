import aiosqlite


async def get_by_type(
    db: aiosqlite.Connection,
    integration_type: str,
) -> dict | None:
    cursor = await db.execute(
        "SELECT * FROM api_integrations WHERE type = ?", (integration_type,)
    )
    row = await cursor.fetchone()
    return dict(row) if row else None


async def set_active(
    db: aiosqlite.Connection,
    integration_type: str,
    active: bool,
) -> bool:
    cursor = await db.execute(
        "UPDATE api_integrations SET active = ? WHERE type = ?",
        (1 if active else 0, integration_type),
    )
    await db.commit()
    return cursor.rowcount > 0


async def record_call(
    db: aiosqlite.Connection,
    integration_id: int,
) -> None:
    await db.execute(
        """
        UPDATE api_integrations
        SET usage = usage + 1, last_call = CURRENT_TIMESTAMP
        WHERE id = ?
        """,
        (integration_id,),
    )
    await db.commit()
