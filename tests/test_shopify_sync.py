"""
Shopify 拉单：GraphQL node 转换、去重入库、token 获取
"""
import asyncio
import json

import httpx
import pytest

from app.core.config import Settings
from app.schemas.orders import OrderStatus, Platform
from app.services import shopify_service
from app.services.shopify_service import ShopifyService, node_to_order_create, sync_new_orders

from conftest import OWNER

NODE = {
    "id": "gid://shopify/Order/126216516",
    "name": "#1001",
    "createdAt": "2024-06-01T12:00:00Z",
    "email": "buyer@example.com",
    "phone": None,
    "totalPriceSet": {"shopMoney": {"amount": "310.00", "currencyCode": "ILS"}},
    "totalWeight": 1200,
    "shippingAddress": {
        "address1": "Herzl 5",
        "address2": None,
        "city": "Haifa",
        "zip": "3303000",
        "country": "Israel",
        "countryCodeV2": "IL",
        "name": "Dana Levi",
        "phone": "+972501112222",
    },
}


def test_node_to_order_create(settings):
    data = node_to_order_create(NODE, settings)

    assert data.order_number == "1001"
    assert data.external_id == "126216516"
    assert data.platform == Platform.SHOPIFY
    assert data.customer_name == "Dana Levi"
    assert data.customer_phone == "+972501112222"
    assert data.total_amount == 310.0
    assert data.weight == 1200
    assert data.shipping_address.street == "Herzl"
    assert data.shipping_address.house_number == "5"


def test_sync_inserts_only_new_orders(service, store):
    data = node_to_order_create(NODE)
    first = asyncio.run(sync_new_orders(service, OWNER, [data]))
    second = asyncio.run(sync_new_orders(service, OWNER, [data]))

    assert (first.created, first.skipped) == (1, 0)
    assert (second.created, second.skipped) == (0, 1)
    order = store.orders[first.order_ids[0]]
    assert order.status == OrderStatus.PENDING
    assert store.logs_for(order.id, "order_created")[0].details["source"] == "shopify_sync"


def test_sync_counts_store_failures(service, store):
    store.fail_inserts = True
    result = asyncio.run(sync_new_orders(service, OWNER, [node_to_order_create(NODE)]))
    assert (result.created, result.failed) == (0, 1)


def test_get_orders_with_client_credentials(monkeypatch):
    monkeypatch.setattr(shopify_service, "_TOKEN_CACHE", None)
    settings = Settings(
        _env_file=None,
        SHOPIFY_STORE_NAME="demo",
        SHOPIFY_CLIENT_ID="cid",
        SHOPIFY_CLIENT_SECRET="secret",
    )
    seen = []
    queries = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path.endswith("/oauth/access_token"):
            return httpx.Response(200, json={"access_token": "shpat_1", "expires_in": 3600})
        queries.append(json.loads(request.content)["variables"].get("query"))
        return httpx.Response(200, json={"data": {"orders": {"edges": [{"node": NODE}]}}})

    service = ShopifyService(settings, transport=httpx.MockTransport(handler))
    orders = asyncio.run(service.get_orders(created_at_min="2024-06-01T00:00:00Z"))
    # 第二次使用缓存的 token
    asyncio.run(service.get_orders())

    assert [o.external_id for o in orders] == ["126216516"]
    assert queries == ["created_at:>=2024-06-01T00:00:00Z", None]
    token_requests = [r for r in seen if r.url.path.endswith("/oauth/access_token")]
    assert len(token_requests) == 1
    assert seen[-1].headers["X-Shopify-Access-Token"] == "shpat_1"


def test_graphql_errors_raise():
    settings = Settings(_env_file=None, SHOPIFY_STORE_NAME="demo", SHOPIFY_ACCESS_TOKEN="static")

    def handler(request):
        return httpx.Response(200, json={"errors": [{"message": "Throttled"}]})

    service = ShopifyService(settings, transport=httpx.MockTransport(handler))
    with pytest.raises(RuntimeError, match="Throttled"):
        asyncio.run(service.get_orders())


def test_missing_shopify_config():
    with pytest.raises(ValueError):
        ShopifyService(Settings(_env_file=None, SHOPIFY_STORE_NAME="demo"))
