"""
HFD 账号配置接口
"""
from typing import Optional

from fastapi import APIRouter, Body, Depends

from app.api.deps import get_gateway, get_owner_id, get_store
from app.models import OrderStore
from app.schemas.base import BaseResponse
from app.schemas.orders import HfdSettings
from app.services.hfd_service import HfdService

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("/hfd")
async def get_hfd_settings(owner_id: str = Depends(get_owner_id), store: OrderStore = Depends(get_store)):
    credentials = await store.get_hfd_settings(owner_id) or HfdSettings()
    return BaseResponse.ok({**credentials.model_dump(), "missing_fields": credentials.missing_fields()})


@router.put("/hfd")
async def save_hfd_settings(
    body: HfdSettings,
    owner_id: str = Depends(get_owner_id),
    store: OrderStore = Depends(get_store),
):
    saved = await store.save_hfd_settings(owner_id, body)
    return BaseResponse.ok(saved, "HFD 配置已保存")


@router.post("/hfd/test")
async def test_hfd_settings(
    body: Optional[HfdSettings] = Body(default=None),
    owner_id: str = Depends(get_owner_id),
    store: OrderStore = Depends(get_store),
    gateway: HfdService = Depends(get_gateway),
):
    """不传 body 时测试已保存的配置"""
    credentials = body if body is not None else await store.get_hfd_settings(owner_id)
    ok, message = await gateway.test_connection(credentials)
    return BaseResponse(success=ok, code=200, data={"ok": ok}, message=message)
