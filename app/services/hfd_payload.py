"""
订单 -> HFD 创建运单请求
"""
from typing import Optional

from app.core.config import Settings, get_settings
from app.core.exceptions import ValidationError
from app.schemas.hfd import HfdShipmentRequest
from app.schemas.orders import Address, HfdSettings, Order


def _first(*values: Optional[str]) -> str:
    for v in values:
        if v is not None and str(v).strip():
            return str(v).strip()
    return ""


def build_shipment_request(
    order: Order,
    credentials: HfdSettings,
    settings: Optional[Settings] = None,
) -> HfdShipmentRequest:
    """
    收件人姓名、城市、街道为必填；缺哪些就在 ValidationError.missing_fields 里列出哪些，
    不会只报第一个。
    姓名/电话优先取收货地址上的，没有再取订单上的客户信息。
    """
    settings = settings or get_settings()
    address = order.shipping_address or Address()

    name = _first(address.name, order.customer_name)
    city = _first(address.city)
    street = _first(address.street)

    missing = []
    if not name:
        missing.append("recipient_name")
    if not city:
        missing.append("shipping_address.city")
    if not street:
        missing.append("shipping_address.street")
    if missing:
        raise ValidationError(missing, f"订单 {order.order_number} 缺少收件信息: {', '.join(missing)}")

    weight = order.weight if order.weight else settings.DEFAULT_WEIGHT_GRAMS
    return HfdShipmentRequest(
        client_number=credentials.client_number or "",
        shipment_type_code=credentials.shipment_type_code or "",
        cargo_type_haloch=credentials.cargo_type_haloch or "",
        name_to=name,
        city_name=city,
        street_name=street,
        house_num=_first(address.house_number),
        tel_first=_first(address.phone, order.customer_phone),
        email=_first(address.email, order.customer_email) or None,
        zip_code=_first(address.zip) or None,
        address_remarks=_first(address.remarks) or None,
        reference_num1=_first(order.order_number, order.external_id),
        reference_num2=_first(order.external_id, order.id),
        products_price=order.total_amount or 0,
        product_price_currency=order.currency or settings.DEFAULT_CURRENCY,
        shipment_weight=float(weight),
        shipment_remarks=f"Order {order.order_number} ({order.platform.value})",
        sender_name=settings.SENDER_NAME or None,
        sender_address=settings.SENDER_ADDRESS or None,
        sender_city=settings.SENDER_CITY or None,
        sender_zip=settings.SENDER_ZIP or None,
        sender_phone=settings.SENDER_PHONE or None,
    )
