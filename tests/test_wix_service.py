"""
Wix webhook
"""
import asyncio

from app.schemas.orders import OrderStatus, Platform
from app.services.wix_service import handle_wix_webhook, wix_order_to_order_create

from conftest import OWNER, carrier_failure

WIX_ORDER = {
    "id": "wix-12345",
    "number": "10001",
    "dateCreated": "2024-05-01T08:30:00Z",
    "customerInfo": {
        "email": "customer@example.com",
        "firstName": "ישראל",
        "lastName": "ישראלי",
        "phone": "0501234567",
    },
    "shippingInfo": {
        "deliveryOption": "Standard",
        "shipmentDetails": {
            "address": {
                "addressLine1": "רחוב דיזנגוף 114",
                "city": "תל אביב",
                "country": "IL",
                "postalCode": "6120201",
            },
            "firstName": "ישראל",
            "lastName": "ישראלי",
            "phone": "0501234567",
        },
    },
    "totals": {"subtotal": 199.99, "total": 234.99, "weight": 500},
}


def test_maps_wix_order(settings):
    data = wix_order_to_order_create(WIX_ORDER, settings)

    assert data.order_number == "10001"
    assert data.external_id == "wix-12345"
    assert data.platform == Platform.WIX
    assert data.customer_name == "ישראל ישראלי"
    assert data.total_amount == 234.99
    assert data.weight == 500
    assert data.order_date.year == 2024
    assert data.shipping_address.city == "תל אביב"
    assert data.shipping_address.house_number == "114"


def test_challenge_handshake(service, store):
    result = asyncio.run(handle_wix_webhook(service, OWNER, {"challenge": "abc123"}))
    assert result.challenge == "abc123"
    assert store.orders == {}


def test_order_is_inserted_pending(service, store, gateway):
    result = asyncio.run(handle_wix_webhook(service, OWNER, {"order": WIX_ORDER}))

    order = store.orders[result.order_id]
    assert order.status == OrderStatus.PENDING
    assert order.user_id == OWNER
    assert result.dispatched is False
    assert gateway.calls == []
    assert store.logs_for(order.id, "order_created")[0].details["source"] == "wix_webhook"


def test_repeated_delivery_is_ignored(service, store):
    first = asyncio.run(handle_wix_webhook(service, OWNER, {"data": {"order": WIX_ORDER}}))
    second = asyncio.run(handle_wix_webhook(service, OWNER, WIX_ORDER))

    assert second.duplicate is True
    assert second.order_id == first.order_id
    assert len(store.orders) == 1


def test_auto_dispatch(service, store, gateway):
    result = asyncio.run(handle_wix_webhook(service, OWNER, {"order": WIX_ORDER}, auto_dispatch=True))

    assert result.dispatched is True
    assert result.shipment.hfd_shipment_number == "900001"
    assert store.orders[result.order_id].status == OrderStatus.SHIPPED


def test_auto_dispatch_skipped_without_credentials(service, store, gateway):
    store.hfd_settings.clear()
    result = asyncio.run(handle_wix_webhook(service, OWNER, {"order": WIX_ORDER}, auto_dispatch=True))

    assert result.dispatched is False
    assert result.dispatch_error is None
    assert gateway.calls == []
    assert store.orders[result.order_id].status == OrderStatus.PENDING


def test_auto_dispatch_failure_is_recorded(service, store, gateway):
    gateway.outcomes["10001"] = carrier_failure()
    result = asyncio.run(handle_wix_webhook(service, OWNER, {"order": WIX_ORDER}, auto_dispatch=True))

    assert result.dispatched is False
    assert result.dispatch_error == "HFD 错误: invalid city"
    assert store.orders[result.order_id].status == OrderStatus.ERROR
