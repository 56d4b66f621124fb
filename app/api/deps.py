"""
路由共用的依赖：当前用户、存储、HFD 网关、业务服务。
测试里通过 app.dependency_overrides 替换 get_store / get_gateway。
"""
from typing import AsyncIterator, Optional

from fastapi import Depends, Header, HTTPException

from app.models import OrderStore, get_connection
from app.services.bulk_service import BulkDispatchService
from app.services.hfd_service import HfdService
from app.services.order_service import OrderService


def get_owner_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """前置认证层写入的 X-User-Id"""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="缺少 X-User-Id")
    return x_user_id.strip()


async def get_store() -> AsyncIterator[OrderStore]:
    conn = await get_connection()
    try:
        yield OrderStore(conn)
    finally:
        await conn.close()


def get_gateway() -> HfdService:
    return HfdService()


def get_order_service(
    store: OrderStore = Depends(get_store),
    gateway: HfdService = Depends(get_gateway),
) -> OrderService:
    return OrderService(store, gateway)


def get_bulk_service(order_service: OrderService = Depends(get_order_service)) -> BulkDispatchService:
    return BulkDispatchService(order_service)
