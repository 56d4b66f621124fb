"""
hfd_settings 表相关数据库操作（每个用户一条 is_active 记录）。
"""
from typing import Any

_COLUMNS = ("client_number", "token", "shipment_type_code", "cargo_type_haloch")


async def get_hfd_settings(conn: Any, user_id: str) -> dict | None:
    row = await conn.fetchrow(
        """
        SELECT client_number, token, shipment_type_code, cargo_type_haloch
        FROM hfd_settings
        WHERE user_id = $1 AND is_active
        """,
        user_id,
    )
    return dict(row) if row else None


async def save_hfd_settings(conn: Any, user_id: str, settings: dict) -> dict:
    """
    有 is_active 记录就更新，否则插入。
    uq_hfd_settings_user_active 保证每个用户最多一条有效配置。
    """
    values = [settings.get(c) for c in _COLUMNS]
    row = await conn.fetchrow(
        """
        UPDATE hfd_settings
        SET client_number = $2, token = $3, shipment_type_code = $4, cargo_type_haloch = $5,
            updated_at = NOW()
        WHERE user_id = $1 AND is_active
        RETURNING client_number, token, shipment_type_code, cargo_type_haloch
        """,
        user_id,
        *values,
    )
    if row is None:
        row = await conn.fetchrow(
            """
            INSERT INTO hfd_settings (user_id, client_number, token, shipment_type_code, cargo_type_haloch)
            VALUES ($1, $2, $3, $4, $5)
            RETURNING client_number, token, shipment_type_code, cargo_type_haloch
            """,
            user_id,
            *values,
        )
    return dict(row)
