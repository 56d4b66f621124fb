"""
order_logs 表相关数据库操作（只追加，不修改）。
"""
import json
from typing import Any


async def append_order_log(
    conn: Any,
    user_id: str,
    order_id: str,
    activity_type: str,
    details: dict | None = None,
) -> dict:
    row = await conn.fetchrow(
        """
        INSERT INTO order_logs (user_id, order_id, activity_type, details)
        VALUES ($1, $2, $3, $4::jsonb)
        RETURNING *
        """,
        user_id,
        order_id,
        activity_type,
        json.dumps(details or {}, ensure_ascii=False, default=str),
    )
    return dict(row)


async def list_order_logs(conn: Any, user_id: str, order_id: str) -> list[dict]:
    """按时间正序返回某订单的操作日志。"""
    rows = await conn.fetch(
        """
        SELECT * FROM order_logs
        WHERE user_id = $1 AND order_id = $2
        ORDER BY created_at
        """,
        user_id,
        order_id,
    )
    return [dict(r) for r in rows]
