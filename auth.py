"""Bearer-token session lookup against the shared asyncpg store."""

from __future__ import annotations

from typing import Any, Optional

from db import db_session


async def get_user_by_token(token: str) -> Optional[dict[str, Any]]:
    async with db_session() as conn:
        record = await conn.fetchrow(
            """
            SELECT u.id, u.email, u.is_guest, s.expires_at
            FROM auth_sessions s
            JOIN auth_users u ON u.id = s.user_id
            WHERE s.token = $1 AND s.expires_at > NOW()
            """,
            token,
        )

    if not record:
        return None

    return {
        "id": record["id"],
        "email": record["email"],
        "is_guest": record["is_guest"],
        "expires_at": record["expires_at"],
    }
