"""
OrderStore：把 orders / order_logs / shipments / hfd_settings 的表操作包成一个对象，
返回 Schema 对象，并把 asyncpg 异常统一转成 StoreError。

服务层只依赖这个对象的方法签名（测试里用内存实现替换）。
"""
import functools
import uuid
from typing import Any, Optional

import asyncpg

from app.core.exceptions import StoreError
from app.models import hfd_settings as hfd_settings_table
from app.models import order_logs as order_logs_table
from app.models import orders as orders_table
from app.models import shipments as shipments_table
from app.schemas.orders import HfdSettings, Order, OrderCreate, OrderLog, OrderStatus, Shipment


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(str(value))
        return True
    except ValueError:
        return False


def _store_errors(func):
    """asyncpg 的数据库异常 -> StoreError"""
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except (asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            raise StoreError(f"{func.__name__} 失败: {e}") from e
    return wrapper


class OrderStore:
    """基于单个 asyncpg 连接的订单存储"""

    def __init__(self, conn: Any):
        self.conn = conn

    # ---- orders ----

    @_store_errors
    async def list_orders(self, owner_id: str, *, include_deleted: bool = False) -> list[Order]:
        rows = await orders_table.list_orders(self.conn, owner_id, include_deleted=include_deleted)
        return [Order.model_validate(r) for r in rows]

    @_store_errors
    async def get_order(self, owner_id: str, order_id: str) -> Optional[Order]:
        if not _is_uuid(order_id):
            return None
        row = await orders_table.get_order(self.conn, owner_id, order_id)
        return Order.model_validate(row) if row else None

    @_store_errors
    async def find_by_external_id(self, owner_id: str, platform: str, external_id: str) -> Optional[Order]:
        row = await orders_table.find_order_by_external_id(self.conn, owner_id, platform, external_id)
        return Order.model_validate(row) if row else None

    @_store_errors
    async def insert_order(self, owner_id: str, order: OrderCreate) -> Order:
        address = order.shipping_address.model_dump() if order.shipping_address else None
        row = await orders_table.insert_order(
            self.conn,
            owner_id,
            external_id=order.external_id or order.order_number,
            order_number=order.order_number,
            platform=order.platform.value,
            customer_name=order.customer_name,
            customer_email=order.customer_email,
            customer_phone=order.customer_phone,
            shipping_address=address,
            total_amount=order.total_amount,
            currency=order.currency,
            weight=order.weight,
            order_date=order.order_date,
            status=OrderStatus.PENDING.value,
        )
        return Order.model_validate(row)

    @_store_errors
    async def update_status(self, owner_id: str, order_id: str, status: OrderStatus) -> Optional[Order]:
        if not _is_uuid(order_id):
            return None
        row = await orders_table.update_order_status(self.conn, owner_id, order_id, OrderStatus(status).value)
        return Order.model_validate(row) if row else None

    @_store_errors
    async def update_fields(self, owner_id: str, order_id: str, fields: dict) -> Optional[Order]:
        if not _is_uuid(order_id):
            return None
        row = await orders_table.update_order_fields(self.conn, owner_id, order_id, fields)
        return Order.model_validate(row) if row else None

    @_store_errors
    async def soft_delete(self, owner_id: str, order_id: str) -> Optional[Order]:
        if not _is_uuid(order_id):
            return None
        row = await orders_table.soft_delete_order(self.conn, owner_id, order_id)
        return Order.model_validate(row) if row else None

    @_store_errors
    async def restore(self, owner_id: str, order_id: str) -> Optional[Order]:
        if not _is_uuid(order_id):
            return None
        row = await orders_table.restore_order(self.conn, owner_id, order_id)
        return Order.model_validate(row) if row else None

    @_store_errors
    async def status_counts(self, owner_id: str) -> dict[str, int]:
        return await orders_table.count_orders_by_status(self.conn, owner_id)

    # ---- order_logs ----

    @_store_errors
    async def append_log(self, owner_id: str, order_id: str, activity_type: str, details: dict | None = None) -> OrderLog:
        row = await order_logs_table.append_order_log(self.conn, owner_id, order_id, activity_type, details)
        return OrderLog.model_validate(row)

    @_store_errors
    async def list_logs(self, owner_id: str, order_id: str) -> list[OrderLog]:
        if not _is_uuid(order_id):
            return []
        rows = await order_logs_table.list_order_logs(self.conn, owner_id, order_id)
        return [OrderLog.model_validate(r) for r in rows]

    # ---- shipments ----

    @_store_errors
    async def insert_shipment(self, owner_id: str, shipment: Shipment) -> Shipment:
        row = await shipments_table.insert_shipment(
            self.conn,
            owner_id,
            order_id=shipment.order_id,
            hfd_shipment_number=shipment.hfd_shipment_number,
            tracking_number=shipment.tracking_number,
            status=shipment.status.value,
            shipment_data=shipment.shipment_data,
        )
        return Shipment.model_validate(row)

    @_store_errors
    async def get_shipment(self, owner_id: str, shipment_id: str) -> Optional[Shipment]:
        if not _is_uuid(shipment_id):
            return None
        row = await shipments_table.get_shipment(self.conn, owner_id, shipment_id)
        return Shipment.model_validate(row) if row else None

    @_store_errors
    async def list_shipments(self, owner_id: str, order_id: str | None = None) -> list[Shipment]:
        if order_id is not None and not _is_uuid(order_id):
            return []
        rows = await shipments_table.list_shipments(self.conn, owner_id, order_id)
        return [Shipment.model_validate(r) for r in rows]

    @_store_errors
    async def update_shipment_status(
        self, owner_id: str, shipment_id: str, status: str, shipment_data: dict | None = None
    ) -> Optional[Shipment]:
        if not _is_uuid(shipment_id):
            return None
        row = await shipments_table.update_shipment_status(self.conn, owner_id, shipment_id, status, shipment_data)
        return Shipment.model_validate(row) if row else None

    # ---- hfd_settings ----

    @_store_errors
    async def get_hfd_settings(self, owner_id: str) -> Optional[HfdSettings]:
        row = await hfd_settings_table.get_hfd_settings(self.conn, owner_id)
        return HfdSettings.model_validate(row) if row else None

    @_store_errors
    async def save_hfd_settings(self, owner_id: str, settings: HfdSettings) -> HfdSettings:
        row = await hfd_settings_table.save_hfd_settings(self.conn, owner_id, settings.model_dump())
        return HfdSettings.model_validate(row)
