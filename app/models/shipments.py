"""
shipments 表相关数据库操作。
"""
import json
from typing import Any


async def insert_shipment(
    conn: Any,
    user_id: str,
    *,
    order_id: str,
    hfd_shipment_number: str | None,
    tracking_number: str | None,
    status: str,
    shipment_data: dict | None = None,
) -> dict:
    row = await conn.fetchrow(
        """
        INSERT INTO shipments (user_id, order_id, hfd_shipment_number, tracking_number, status, shipment_data)
        VALUES ($1, $2, $3, $4, $5, $6::jsonb)
        RETURNING *
        """,
        user_id,
        order_id,
        hfd_shipment_number,
        tracking_number,
        status,
        json.dumps(shipment_data or {}, ensure_ascii=False, default=str),
    )
    return dict(row)


async def get_shipment(conn: Any, user_id: str, shipment_id: str) -> dict | None:
    row = await conn.fetchrow(
        "SELECT * FROM shipments WHERE id = $1 AND user_id = $2",
        shipment_id,
        user_id,
    )
    return dict(row) if row else None


async def list_shipments(conn: Any, user_id: str, order_id: str | None = None) -> list[dict]:
    """只返回未删除订单的运单。"""
    order_filter = "AND s.order_id = $2" if order_id is not None else ""
    args: list[Any] = [user_id]
    if order_id is not None:
        args.append(order_id)
    rows = await conn.fetch(
        f"""
        SELECT s.* FROM shipments s
        JOIN orders o ON o.id = s.order_id
        WHERE s.user_id = $1 AND o.deleted_at IS NULL {order_filter}
        ORDER BY s.created_at DESC
        """,
        *args,
    )
    return [dict(r) for r in rows]


async def update_shipment_status(
    conn: Any,
    user_id: str,
    shipment_id: str,
    status: str,
    shipment_data: dict | None = None,
) -> dict | None:
    """shipment_data 为 None 时保留原值。"""
    row = await conn.fetchrow(
        """
        UPDATE shipments
        SET status = $3,
            shipment_data = COALESCE($4::jsonb, shipment_data),
            updated_at = NOW()
        WHERE id = $1 AND user_id = $2
        RETURNING *
        """,
        shipment_id,
        user_id,
        status,
        json.dumps(shipment_data, ensure_ascii=False, default=str) if shipment_data is not None else None,
    )
    return dict(row) if row else None
