"""
订单接口
"""
from fastapi import APIRouter, Depends

from app.api.deps import get_bulk_service, get_order_service, get_owner_id
from app.schemas.base import BaseResponse
from app.schemas.orders import BulkRequest, OrderCreate, OrderUpdate, StageRequest, StatusUpdateRequest
from app.services.bulk_service import BulkDispatchService
from app.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("")
async def list_orders(
    include_deleted: bool = False,
    owner_id: str = Depends(get_owner_id),
    service: OrderService = Depends(get_order_service),
):
    orders = await service.store.list_orders(owner_id, include_deleted=include_deleted)
    return BaseResponse.ok(orders)


@router.get("/stats")
async def order_stats(owner_id: str = Depends(get_owner_id), service: OrderService = Depends(get_order_service)):
    """各状态订单数（不含已删除）"""
    return BaseResponse.ok(await service.store.status_counts(owner_id))


@router.post("")
async def create_order(
    body: OrderCreate,
    owner_id: str = Depends(get_owner_id),
    service: OrderService = Depends(get_order_service),
):
    order = await service.create_order(owner_id, body, source="manual")
    return BaseResponse.ok(order, "订单已创建")


# bulk 路由必须在 /{order_id} 之前注册
@router.post("/bulk/dispatch")
async def bulk_dispatch(
    body: BulkRequest,
    owner_id: str = Depends(get_owner_id),
    bulk: BulkDispatchService = Depends(get_bulk_service),
):
    result = await bulk.bulk_dispatch(owner_id, body.order_ids)
    return BaseResponse.ok(result, result.summary)


@router.post("/bulk/delete")
async def bulk_delete(
    body: BulkRequest,
    owner_id: str = Depends(get_owner_id),
    bulk: BulkDispatchService = Depends(get_bulk_service),
):
    result = await bulk.bulk_soft_delete(owner_id, body.order_ids)
    return BaseResponse.ok(result, result.summary)


@router.get("/{order_id}")
async def get_order(order_id: str, owner_id: str = Depends(get_owner_id), service: OrderService = Depends(get_order_service)):
    return BaseResponse.ok(await service.get_order(owner_id, order_id))


@router.patch("/{order_id}")
async def edit_order(
    order_id: str,
    body: OrderUpdate,
    owner_id: str = Depends(get_owner_id),
    service: OrderService = Depends(get_order_service),
):
    return BaseResponse.ok(await service.edit_order(owner_id, order_id, body), "订单已更新")


@router.post("/{order_id}/status")
async def update_status(
    order_id: str,
    body: StatusUpdateRequest,
    owner_id: str = Depends(get_owner_id),
    service: OrderService = Depends(get_order_service),
):
    return BaseResponse.ok(await service.update_status(owner_id, order_id, body.status), "状态已更新")


@router.post("/{order_id}/stage")
async def advance_stage(
    order_id: str,
    body: StageRequest,
    owner_id: str = Depends(get_owner_id),
    service: OrderService = Depends(get_order_service),
):
    return BaseResponse.ok(await service.advance_stage(owner_id, order_id, body.stage))


@router.post("/{order_id}/dispatch")
async def dispatch_order(
    order_id: str,
    owner_id: str = Depends(get_owner_id),
    service: OrderService = Depends(get_order_service),
):
    """发往 HFD，成功返回运单号与面单链接"""
    order = await service.get_order(owner_id, order_id)
    ref = await service.dispatch_to_carrier(owner_id, order)
    return BaseResponse.ok(ref, f"运单已创建: {ref.hfd_shipment_number}")


@router.delete("/{order_id}")
async def delete_order(order_id: str, owner_id: str = Depends(get_owner_id), service: OrderService = Depends(get_order_service)):
    return BaseResponse.ok(await service.soft_delete(owner_id, order_id), "订单已删除")


@router.post("/{order_id}/restore")
async def restore_order(order_id: str, owner_id: str = Depends(get_owner_id), service: OrderService = Depends(get_order_service)):
    return BaseResponse.ok(await service.restore(owner_id, order_id), "订单已恢复")


@router.get("/{order_id}/logs")
async def order_logs(order_id: str, owner_id: str = Depends(get_owner_id), service: OrderService = Depends(get_order_service)):
    await service.get_order(owner_id, order_id)
    return BaseResponse.ok(await service.store.list_logs(owner_id, order_id))


@router.get("/{order_id}/shipments")
async def order_shipments(order_id: str, owner_id: str = Depends(get_owner_id), service: OrderService = Depends(get_order_service)):
    await service.get_order(owner_id, order_id)
    return BaseResponse.ok(await service.store.list_shipments(owner_id, order_id))
