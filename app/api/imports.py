"""
订单文件导入（CSV / XLSX）
"""
from fastapi import APIRouter, Depends, File, UploadFile

from app.api.deps import get_order_service, get_owner_id
from app.schemas.base import BaseResponse
from app.services.import_service import import_orders
from app.services.order_service import OrderService

router = APIRouter(prefix="/imports", tags=["imports"])


@router.post("/orders")
async def import_orders_file(
    file: UploadFile = File(...),
    owner_id: str = Depends(get_owner_id),
    service: OrderService = Depends(get_order_service),
):
    content = await file.read()
    result = await import_orders(service, owner_id, file.filename or "", content)
    return BaseResponse(
        success=not result.errors,
        data=result,
        message=f"导入成功 {result.success} 条，失败 {len(result.errors)} 条",
    )
