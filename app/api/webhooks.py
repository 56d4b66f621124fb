"""
平台 webhook（无 X-User-Id，用户 id 来自注册的 webhook 地址）
"""
import json

from fastapi import APIRouter, Depends, HTTPException, Request

from app.api.deps import get_order_service
from app.schemas.base import BaseResponse
from app.services.order_service import OrderService
from app.services.wix_service import handle_wix_webhook

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/wix/{owner_id}")
async def wix_webhook(
    owner_id: str,
    request: Request,
    auto_dispatch: bool = False,
    service: OrderService = Depends(get_order_service),
):
    try:
        payload = await request.json()
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail="请求体不是合法的 JSON")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="请求体必须是 JSON 对象")

    result = await handle_wix_webhook(service, owner_id, payload, auto_dispatch=auto_dispatch)
    if result.challenge is not None:
        # Wix 校验要求原样返回 {"challenge": ...}
        return {"challenge": result.challenge}
    return BaseResponse.ok(result.model_dump(exclude={"challenge"}), "Webhook received successfully")
