"""
orders 表相关数据库操作。

所有函数都带 user_id，并在 SQL 里按 user_id 过滤；默认排除已软删除的订单。
"""
import json
from datetime import datetime
from typing import Any

# update_order_fields 允许更新的列
EDITABLE_COLUMNS = (
    "customer_name",
    "customer_email",
    "customer_phone",
    "shipping_address",
    "total_amount",
    "currency",
    "weight",
)
_JSON_COLUMNS = {"shipping_address"}


def _json_or_none(value: Any) -> str | None:
    return json.dumps(value, ensure_ascii=False) if value is not None else None


async def list_orders(conn: Any, user_id: str, *, include_deleted: bool = False) -> list[dict]:
    """按创建时间倒序返回用户的订单。"""
    deleted_filter = "" if include_deleted else "AND deleted_at IS NULL"
    rows = await conn.fetch(
        f"""
        SELECT * FROM orders
        WHERE user_id = $1 {deleted_filter}
        ORDER BY created_at DESC
        """,
        user_id,
    )
    return [dict(r) for r in rows]


async def get_order(conn: Any, user_id: str, order_id: str, *, include_deleted: bool = False) -> dict | None:
    deleted_filter = "" if include_deleted else "AND deleted_at IS NULL"
    row = await conn.fetchrow(
        f"SELECT * FROM orders WHERE id = $1 AND user_id = $2 {deleted_filter}",
        order_id,
        user_id,
    )
    return dict(row) if row else None


async def find_order_by_external_id(conn: Any, user_id: str, platform: str, external_id: str) -> dict | None:
    """按来源平台 + 平台订单 ID 查（含已删除，避免重复拉单把删掉的订单又插回来）。"""
    row = await conn.fetchrow(
        """
        SELECT * FROM orders
        WHERE user_id = $1 AND platform = $2 AND external_id = $3
        LIMIT 1
        """,
        user_id,
        platform,
        external_id,
    )
    return dict(row) if row else None


async def insert_order(
    conn: Any,
    user_id: str,
    *,
    external_id: str,
    order_number: str,
    platform: str,
    customer_name: str | None = None,
    customer_email: str | None = None,
    customer_phone: str | None = None,
    shipping_address: dict | None = None,
    total_amount: float | None = None,
    currency: str | None = None,
    weight: float | None = None,
    order_date: datetime | None = None,
    status: str = "pending",
) -> dict:
    """插入一条订单，返回插入后的整行。"""
    row = await conn.fetchrow(
        """
        INSERT INTO orders (
            user_id, external_id, order_number, platform,
            customer_name, customer_email, customer_phone, shipping_address,
            total_amount, currency, weight, status, order_date
        ) VALUES (
            $1, $2, $3, $4, $5, $6, $7, $8::jsonb, $9, $10, $11, $12, $13
        )
        RETURNING *
        """,
        user_id,
        external_id,
        order_number,
        platform,
        customer_name,
        customer_email,
        customer_phone,
        _json_or_none(shipping_address),
        total_amount,
        currency or "ILS",
        weight,
        status,
        order_date,
    )
    return dict(row)


async def update_order_status(conn: Any, user_id: str, order_id: str, status: str) -> dict | None:
    row = await conn.fetchrow(
        """
        UPDATE orders SET status = $3, updated_at = NOW()
        WHERE id = $1 AND user_id = $2 AND deleted_at IS NULL
        RETURNING *
        """,
        order_id,
        user_id,
        status,
    )
    return dict(row) if row else None


async def update_order_fields(conn: Any, user_id: str, order_id: str, fields: dict) -> dict | None:
    """只更新 EDITABLE_COLUMNS 里的列；其它键忽略。"""
    columns = [c for c in EDITABLE_COLUMNS if c in fields]
    if not columns:
        return await get_order(conn, user_id, order_id)
    assignments = []
    values: list[Any] = [order_id, user_id]
    for col in columns:
        values.append(_json_or_none(fields[col]) if col in _JSON_COLUMNS else fields[col])
        cast = "::jsonb" if col in _JSON_COLUMNS else ""
        assignments.append(f"{col} = ${len(values)}{cast}")
    row = await conn.fetchrow(
        f"""
        UPDATE orders SET {', '.join(assignments)}, updated_at = NOW()
        WHERE id = $1 AND user_id = $2 AND deleted_at IS NULL
        RETURNING *
        """,
        *values,
    )
    return dict(row) if row else None


async def soft_delete_order(conn: Any, user_id: str, order_id: str) -> dict | None:
    """只对未删除的订单生效。"""
    row = await conn.fetchrow(
        """
        UPDATE orders SET deleted_at = NOW(), deleted_by = $2
        WHERE id = $1 AND user_id = $2 AND deleted_at IS NULL
        RETURNING *
        """,
        order_id,
        user_id,
    )
    return dict(row) if row else None


async def restore_order(conn: Any, user_id: str, order_id: str) -> dict | None:
    row = await conn.fetchrow(
        """
        UPDATE orders SET deleted_at = NULL, deleted_by = NULL
        WHERE id = $1 AND user_id = $2
        RETURNING *
        """,
        order_id,
        user_id,
    )
    return dict(row) if row else None


async def count_orders_by_status(conn: Any, user_id: str) -> dict[str, int]:
    rows = await conn.fetch(
        """
        SELECT status, COUNT(*) AS n FROM orders
        WHERE user_id = $1 AND deleted_at IS NULL
        GROUP BY status
        """,
        user_id,
    )
    return {r["status"]: int(r["n"]) for r in rows}
