"""
Shopify 服务层 - 使用 Admin GraphQL API 拉取订单
参考: https://shopify.dev/docs/api/admin-graphql/latest/queries/orders
Token: https://shopify.dev/docs/apps/build/authentication-authorization/access-tokens/client-credentials-grant
"""
import re
import time
from typing import Any, Optional

import httpx
from loguru import logger

from app.core.config import Settings, get_settings
from app.core.exceptions import StoreError
from app.schemas.orders import OrderCreate, Platform
from app.schemas.shopify import ShopifySyncResult
from app.services.order_service import OrderService
from app.sync_utils import address_from_shopify, parse_datetime, utcnow

# access_token 缓存：(token, 过期时间戳)，提前 5 分钟刷新
_TOKEN_CACHE: Optional[tuple[str, float]] = None
_TOKEN_BUFFER_SECONDS = 300


# GraphQL 查询：只取建单和发货需要的字段
ORDERS_QUERY = """
query GetOrders($first: Int!, $query: String) {
  orders(first: $first, query: $query, sortKey: PROCESSED_AT, reverse: true) {
    edges {
      node {
        id
        name
        createdAt
        email
        phone
        totalPriceSet {
          shopMoney {
            amount
            currencyCode
          }
        }
        totalWeight
        shippingAddress {
          address1
          address2
          city
          zip
          country
          countryCodeV2
          name
          firstName
          lastName
          phone
        }
      }
    }
  }
}
"""


def _parse_order_id(gid: str) -> str:
    """从 GID 解析数字 ID，如 gid://shopify/Order/126216516 -> 126216516"""
    if not gid:
        return ""
    match = re.search(r"/(\d+)$", gid)
    return match.group(1) if match else gid


def node_to_order_create(node: dict, settings: Optional[Settings] = None) -> OrderCreate:
    """将 GraphQL orders.edges[].node 转为 OrderCreate"""
    settings = settings or get_settings()
    shop_money = (node.get("totalPriceSet") or {}).get("shopMoney") or {}
    shipping = node.get("shippingAddress")
    address = address_from_shopify(shipping) if shipping else None
    external_id = _parse_order_id(node.get("id", ""))
    amount = shop_money.get("amount")

    return OrderCreate(
        order_number=(node.get("name") or external_id).lstrip("#"),
        external_id=external_id,
        platform=Platform.SHOPIFY,
        customer_name=(address or {}).get("name"),
        customer_email=node.get("email"),
        customer_phone=node.get("phone") or (address or {}).get("phone"),
        total_amount=float(amount) if amount not in (None, "") else None,
        currency=shop_money.get("currencyCode") or settings.DEFAULT_CURRENCY,
        # totalWeight 单位为克
        weight=float(node["totalWeight"]) if node.get("totalWeight") else None,
        order_date=parse_datetime(node.get("createdAt")) or utcnow(),
        shipping_address=address,
    )


class ShopifyService:
    """Shopify 业务服务（GraphQL）"""

    def __init__(self, settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings or get_settings()
        self.graphql_url = self.settings.shopify_graphql_url
        self.transport = transport
        if not self.settings.SHOPIFY_STORE_NAME:
            raise ValueError("请在 .env 中配置 SHOPIFY_STORE_NAME")
        if not self.settings.use_client_credentials() and not self.settings.SHOPIFY_ACCESS_TOKEN:
            raise ValueError(
                "请在 .env 中配置 SHOPIFY_CLIENT_ID + SHOPIFY_CLIENT_SECRET（推荐），"
                "或配置 SHOPIFY_ACCESS_TOKEN"
            )

    async def _get_access_token(self) -> str:
        """
        获取 access_token：优先 Client Credentials 动态获取并缓存，否则使用 .env 中的静态 token。
        """
        if not self.settings.use_client_credentials():
            return self.settings.SHOPIFY_ACCESS_TOKEN

        global _TOKEN_CACHE
        now = time.time()
        if _TOKEN_CACHE and _TOKEN_CACHE[1] > now:
            return _TOKEN_CACHE[0]
        # 文档要求 application/x-www-form-urlencoded
        data = {
            "grant_type": "client_credentials",
            "client_id": self.settings.SHOPIFY_CLIENT_ID,
            "client_secret": self.settings.SHOPIFY_CLIENT_SECRET,
        }
        logger.info("使用 Client Credentials 获取 Shopify access_token")
        async with httpx.AsyncClient(timeout=30.0, transport=self.transport) as client:
            response = await client.post(
                self.settings.shopify_oauth_token_url,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                data=data,
            )
            response.raise_for_status()
            body = response.json()
        token = body.get("access_token")
        if not token:
            raise RuntimeError(f"未获取到 access_token: {body}")
        expires_in = int(body.get("expires_in", 86399))  # 默认 24 小时
        _TOKEN_CACHE = (token, now + expires_in - _TOKEN_BUFFER_SECONDS)
        logger.info(f"access_token 获取成功，有效期约 {expires_in} 秒")
        return token

    async def _graphql_request(self, query: str, variables: Optional[dict] = None) -> dict:
        """POST https://{store}.myshopify.com/admin/api/{version}/graphql.json"""
        access_token = await self._get_access_token()
        headers = {
            "X-Shopify-Access-Token": access_token,
            "Content-Type": "application/json",
        }
        payload: dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables

        logger.info(f"请求 Shopify GraphQL: POST {self.graphql_url}")
        async with httpx.AsyncClient(timeout=30.0, transport=self.transport) as client:
            try:
                response = await client.post(self.graphql_url, headers=headers, json=payload)
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                logger.error(f"Shopify GraphQL 请求失败: {e.response.status_code} - {e.response.text}")
                raise
            data = response.json()

        if data.get("errors"):
            logger.error(f"GraphQL 错误: {data['errors']}")
            raise RuntimeError(f"GraphQL errors: {data['errors']}")
        return data.get("data") or {}

    async def get_orders(
        self,
        limit: int = 50,
        created_at_min: Optional[str] = None,
        created_at_max: Optional[str] = None,
    ) -> list[OrderCreate]:
        """获取订单列表，已转换为 OrderCreate"""
        filters = []
        if created_at_min:
            filters.append(f"created_at:>={created_at_min}")
        if created_at_max:
            filters.append(f"created_at:<={created_at_max}")

        variables: dict[str, Any] = {"first": min(limit, 250)}
        if filters:
            variables["query"] = " ".join(filters)

        data = await self._graphql_request(ORDERS_QUERY, variables)
        edges = (data.get("orders") or {}).get("edges") or []
        nodes = [e.get("node") for e in edges if e.get("node")]
        logger.info(f"获取到 {len(nodes)} 条 Shopify 订单")
        return [node_to_order_create(n, self.settings) for n in nodes]


async def sync_new_orders(order_service: OrderService, owner_id: str, orders: list[OrderCreate]) -> ShopifySyncResult:
    """按 (shopify, external_id) 去重，只插入新订单"""
    result = ShopifySyncResult(fetched=len(orders))
    for data in orders:
        try:
            existing = await order_service.store.find_by_external_id(owner_id, Platform.SHOPIFY.value, data.external_id)
            if existing is not None:
                result.skipped += 1
                continue
            order = await order_service.create_order(owner_id, data, source="shopify_sync")
        except StoreError as e:
            logger.warning(f"  Shopify 订单 {data.order_number} 入库失败: {e}")
            result.failed += 1
            continue
        logger.info(f"  新 Shopify 订单: {order.order_number}")
        result.created += 1
        result.order_ids.append(order.id)
    return result
