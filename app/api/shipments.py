"""
运单接口
"""
from fastapi import APIRouter, Depends

from app.api.deps import get_order_service, get_owner_id
from app.schemas.base import BaseResponse
from app.services.order_service import OrderService

router = APIRouter(prefix="/shipments", tags=["shipments"])


@router.post("/{shipment_id}/refresh")
async def refresh_shipment(
    shipment_id: str,
    owner_id: str = Depends(get_owner_id),
    service: OrderService = Depends(get_order_service),
):
    return BaseResponse.ok(await service.refresh_shipment_status(owner_id, shipment_id))
