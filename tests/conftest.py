"""
测试共用：内存版 OrderStore、可编排结果的 HFD 网关替身。
不连数据库、不发网络请求。
"""
import itertools
import uuid
from typing import Optional

import pytest

from app.core.config import Settings
from app.core.exceptions import CarrierError, StoreError
from app.schemas.hfd import HfdShipmentRequest, HfdShipmentResult
from app.schemas.orders import (
    HfdSettings,
    Order,
    OrderCreate,
    OrderLog,
    OrderStatus,
    Shipment,
)
from app.services.order_service import OrderService
from app.sync_utils import utcnow

OWNER = "owner-1"
OTHER_OWNER = "owner-2"

GOOD_ADDRESS = {
    "name": "Israel Israeli",
    "phone": "0501234567",
    "street": "Dizengoff",
    "house_number": "114",
    "city": "Tel Aviv",
    "zip": "6120201",
    "country": "IL",
}

COMPLETE_CREDENTIALS = HfdSettings(
    client_number="3399",
    token="secret-token",
    shipment_type_code="35",
    cargo_type_haloch="10",
)


class InMemoryOrderStore:
    """与 OrderStore 方法签名一致的内存实现"""

    def __init__(self):
        self.orders: dict[str, Order] = {}
        self.logs: list[OrderLog] = []
        self.shipments: dict[str, Shipment] = {}
        self.hfd_settings: dict[str, HfdSettings] = {}
        self.owners_of_shipments: dict[str, str] = {}
        self.fail_logs = False
        self.fail_inserts = False

    # ---- 测试辅助 ----

    def add(
        self,
        owner_id: str = OWNER,
        order_number: Optional[str] = None,
        *,
        status: OrderStatus = OrderStatus.PENDING,
        address: Optional[dict] = None,
        deleted: bool = False,
        **fields,
    ) -> Order:
        order_id = str(uuid.uuid4())
        order_number = order_number or f"#{len(self.orders) + 1001}"
        order = Order(
            id=order_id,
            user_id=owner_id,
            external_id=fields.pop("external_id", order_number),
            order_number=order_number,
            status=status,
            shipping_address=GOOD_ADDRESS if address is None else address,
            customer_name=fields.pop("customer_name", "Israel Israeli"),
            created_at=utcnow(),
            deleted_at=utcnow() if deleted else None,
            **fields,
        )
        self.orders[order_id] = order
        return order

    def logs_for(self, order_id: str, activity_type: Optional[str] = None) -> list[OrderLog]:
        return [
            log for log in self.logs
            if log.order_id == order_id and (activity_type is None or log.activity_type == activity_type)
        ]

    def _visible(self, owner_id: str, order_id: str) -> Optional[Order]:
        order = self.orders.get(order_id)
        if order is None or order.user_id != owner_id or order.is_deleted:
            return None
        return order

    def _replace(self, order: Order, **changes) -> Order:
        updated = order.model_copy(update={**changes, "updated_at": utcnow()})
        self.orders[order.id] = updated
        return updated

    # ---- orders ----

    async def list_orders(self, owner_id: str, *, include_deleted: bool = False) -> list[Order]:
        return [
            o for o in self.orders.values()
            if o.user_id == owner_id and (include_deleted or not o.is_deleted)
        ]

    async def get_order(self, owner_id: str, order_id: str) -> Optional[Order]:
        return self._visible(owner_id, order_id)

    async def find_by_external_id(self, owner_id: str, platform: str, external_id: str) -> Optional[Order]:
        for o in self.orders.values():
            if o.user_id == owner_id and o.platform.value == platform and o.external_id == external_id:
                return o
        return None

    async def insert_order(self, owner_id: str, order: OrderCreate) -> Order:
        if self.fail_inserts:
            raise StoreError("insert_order 失败: connection lost")
        new = Order(
            id=str(uuid.uuid4()),
            user_id=owner_id,
            external_id=order.external_id or order.order_number,
            status=OrderStatus.PENDING,
            created_at=utcnow(),
            **order.model_dump(exclude={"external_id"}),
        )
        self.orders[new.id] = new
        return new

    async def update_status(self, owner_id: str, order_id: str, status: OrderStatus) -> Optional[Order]:
        order = self._visible(owner_id, order_id)
        return self._replace(order, status=OrderStatus(status)) if order else None

    async def update_fields(self, owner_id: str, order_id: str, fields: dict) -> Optional[Order]:
        order = self._visible(owner_id, order_id)
        if order is None:
            return None
        merged = Order.model_validate({**order.model_dump(), **fields})
        return self._replace(order, **{k: getattr(merged, k) for k in fields})

    async def soft_delete(self, owner_id: str, order_id: str) -> Optional[Order]:
        order = self._visible(owner_id, order_id)
        return self._replace(order, deleted_at=utcnow(), deleted_by=owner_id) if order else None

    async def restore(self, owner_id: str, order_id: str) -> Optional[Order]:
        order = self.orders.get(order_id)
        if order is None or order.user_id != owner_id:
            return None
        return self._replace(order, deleted_at=None, deleted_by=None)

    async def status_counts(self, owner_id: str) -> dict[str, int]:
        counts: dict[str, int] = {}
        for o in await self.list_orders(owner_id):
            counts[o.status.value] = counts.get(o.status.value, 0) + 1
        return counts

    # ---- order_logs ----

    async def append_log(self, owner_id: str, order_id: str, activity_type: str, details: dict | None = None) -> OrderLog:
        if self.fail_logs:
            raise StoreError("append_log 失败: connection lost")
        log = OrderLog(id=str(uuid.uuid4()), order_id=order_id, activity_type=activity_type, details=details or {}, created_at=utcnow())
        self.logs.append(log)
        return log

    async def list_logs(self, owner_id: str, order_id: str) -> list[OrderLog]:
        order = self.orders.get(order_id)
        if order is None or order.user_id != owner_id:
            return []
        return self.logs_for(order_id)

    # ---- shipments ----

    async def insert_shipment(self, owner_id: str, shipment: Shipment) -> Shipment:
        saved = shipment.model_copy(update={"id": str(uuid.uuid4()), "created_at": utcnow()})
        self.shipments[saved.id] = saved
        self.owners_of_shipments[saved.id] = owner_id
        return saved

    async def get_shipment(self, owner_id: str, shipment_id: str) -> Optional[Shipment]:
        if self.owners_of_shipments.get(shipment_id) != owner_id:
            return None
        return self.shipments.get(shipment_id)

    async def list_shipments(self, owner_id: str, order_id: str | None = None) -> list[Shipment]:
        return [
            s for s in self.shipments.values()
            if self.owners_of_shipments[s.id] == owner_id and (order_id is None or s.order_id == order_id)
        ]

    async def update_shipment_status(
        self, owner_id: str, shipment_id: str, status: str, shipment_data: dict | None = None
    ) -> Optional[Shipment]:
        shipment = await self.get_shipment(owner_id, shipment_id)
        if shipment is None:
            return None
        updated = Shipment.model_validate(
            {**shipment.model_dump(), "status": status, "shipment_data": shipment_data or shipment.shipment_data}
        )
        self.shipments[shipment_id] = updated
        return updated

    # ---- hfd_settings ----

    async def get_hfd_settings(self, owner_id: str) -> Optional[HfdSettings]:
        return self.hfd_settings.get(owner_id)

    async def save_hfd_settings(self, owner_id: str, settings: HfdSettings) -> HfdSettings:
        self.hfd_settings[owner_id] = settings
        return settings


class FakeGateway:
    """
    按订单号编排 HFD 返回：outcomes[order_number] 为 Exception 时抛出，
    否则返回成功结果。calls 记录每次 create_shipment 的请求。
    """

    def __init__(self, outcomes: Optional[dict] = None):
        self.outcomes = outcomes or {}
        self.calls: list[HfdShipmentRequest] = []
        self.status_payloads: dict[str, dict] = {}
        self.connection_ok = True
        self._numbers = itertools.count(900001)

    async def create_shipment(self, request: HfdShipmentRequest, credentials: HfdSettings) -> HfdShipmentResult:
        self.calls.append(request)
        outcome = self.outcomes.get(request.reference_num1)
        if isinstance(outcome, Exception):
            raise outcome
        number = str(next(self._numbers))
        raw = {"shipmentNumber": number, "randNumber": f"R{number}"}
        return HfdShipmentResult(shipment_number=number, tracking_number=f"R{number}", raw=raw)

    async def get_shipment_status(self, shipment_number: str, credentials: HfdSettings) -> dict:
        return self.status_payloads.get(shipment_number, {"shipmentNumber": shipment_number})

    async def test_connection(self, credentials: Optional[HfdSettings]) -> tuple[bool, str]:
        if credentials is None or not credentials.is_complete():
            return False, "HFD 账号未配置完整"
        return (True, "HFD 连接正常") if self.connection_ok else (False, "连接测试失败: HFD 服务端错误 (HTTP 503)")

    def shipping_label_url(self, shipment_number: str) -> str:
        return f"https://labels.example/{shipment_number}"

    @property
    def dispatched_numbers(self) -> list[str]:
        return [c.reference_num1 for c in self.calls]


def carrier_failure(message: str = "HFD 错误: invalid city") -> CarrierError:
    return CarrierError(message, error_code="12")


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, BULK_ERROR_MESSAGE_LIMIT=3)


@pytest.fixture
def store() -> InMemoryOrderStore:
    s = InMemoryOrderStore()
    s.hfd_settings[OWNER] = COMPLETE_CREDENTIALS
    return s


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def service(store, gateway, settings) -> OrderService:
    return OrderService(store, gateway, settings)
