"""
Wix 订单 webhook

Wix 配置 webhook 时会先发一个 {"challenge": ...} 校验请求，原样回传即可。
其它请求按订单处理：转成 OrderCreate 入库（pending），同一个 Wix 订单重复推送只入库一次。
auto_dispatch=True 且该用户 HFD 配置完整时立即发货；发货失败只记录，webhook 仍然返回成功。
"""
from typing import Any, Optional

from loguru import logger
from pydantic import BaseModel

from app.core.config import Settings, get_settings
from app.core.exceptions import OrderDeskError, ValidationError
from app.schemas.orders import OrderCreate, Platform, ShipmentRef
from app.services.order_service import OrderService
from app.sync_utils import address_from_wix, parse_datetime, utcnow


class WixWebhookResult(BaseModel):
    challenge: Optional[str] = None
    order_id: Optional[str] = None
    order_number: Optional[str] = None
    duplicate: bool = False
    dispatched: bool = False
    dispatch_error: Optional[str] = None
    shipment: Optional[ShipmentRef] = None


def _extract_order(payload: dict) -> dict:
    """兼容 {"order": {...}}、{"data": {"order": {...}}} 和直接推订单三种格式"""
    if isinstance(payload.get("order"), dict):
        return payload["order"]
    data = payload.get("data")
    if isinstance(data, dict) and isinstance(data.get("order"), dict):
        return data["order"]
    return payload


def _to_float(value: Any) -> Optional[float]:
    try:
        return float(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


def wix_order_to_order_create(order: dict, settings: Optional[Settings] = None) -> OrderCreate:
    """Wix 订单 -> OrderCreate；订单号和 id 都没有时抛 ValidationError"""
    settings = settings or get_settings()
    wix_id = order.get("id") or order.get("_id")
    number = order.get("number") or wix_id
    if not number:
        raise ValidationError(["number"], "Wix 订单缺少 number / id")

    buyer = order.get("customerInfo") or order.get("buyerInfo") or {}
    shipment_details = (order.get("shippingInfo") or {}).get("shipmentDetails") or {}
    address = address_from_wix(shipment_details) if shipment_details else None
    if address is not None:
        address["name"] = address["name"] or " ".join(
            p for p in (buyer.get("firstName"), buyer.get("lastName")) if p
        ) or None
        address["phone"] = address["phone"] or buyer.get("phone")

    totals = order.get("totals") or {}
    customer_name = " ".join(p for p in (buyer.get("firstName"), buyer.get("lastName")) if p)
    return OrderCreate(
        order_number=str(number),
        external_id=str(wix_id or number),
        platform=Platform.WIX,
        customer_name=customer_name or (address or {}).get("name"),
        customer_email=buyer.get("email") or shipment_details.get("email"),
        customer_phone=buyer.get("phone") or shipment_details.get("phone"),
        total_amount=_to_float(totals.get("total")),
        currency=order.get("currency") or settings.DEFAULT_CURRENCY,
        weight=_to_float(totals.get("weight")),
        order_date=parse_datetime(order.get("dateCreated")) or utcnow(),
        shipping_address=address,
    )


async def handle_wix_webhook(
    order_service: OrderService,
    owner_id: str,
    payload: dict,
    *,
    auto_dispatch: bool = False,
) -> WixWebhookResult:
    if payload.get("challenge"):
        logger.info("Wix webhook 校验请求")
        return WixWebhookResult(challenge=str(payload["challenge"]))

    data = wix_order_to_order_create(_extract_order(payload))
    existing = await order_service.store.find_by_external_id(owner_id, Platform.WIX.value, data.external_id)
    if existing is not None:
        logger.info(f"Wix 订单已存在，忽略重复推送: {data.order_number}")
        return WixWebhookResult(order_id=existing.id, order_number=existing.order_number, duplicate=True)

    order = await order_service.create_order(owner_id, data, source="wix_webhook")
    result = WixWebhookResult(order_id=order.id, order_number=order.order_number)
    if not auto_dispatch:
        return result

    credentials = await order_service.store.get_hfd_settings(owner_id)
    if credentials is None or not credentials.is_complete():
        logger.info(f"HFD 未配置完整，Wix 订单 {order.order_number} 不自动发货")
        return result

    try:
        result.shipment = await order_service.dispatch_to_carrier(
            owner_id, order, credentials=credentials, context="wix_webhook"
        )
        result.dispatched = True
    except OrderDeskError as e:
        logger.warning(f"Wix 订单 {order.order_number} 自动发货失败: {e.message}")
        result.dispatch_error = e.message
    return result
