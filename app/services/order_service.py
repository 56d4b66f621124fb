"""
订单状态流转服务

  pending -> processed -> shipped -> delivered
  pending/processed -> in_process（拣货流程中）
  发货失败 -> error，可重置回 pending 或直接重新发货

手动改状态走 update_status（受 MANUAL_TRANSITIONS 约束）；
发往 HFD 走 dispatch_to_carrier，由它负责写 shipped / error。
每次状态变更追加一条 order_logs；日志写失败只打印到后台日志，不影响主操作。
"""
from typing import Any, Optional

from loguru import logger

from app.core.config import Settings, get_settings
from app.core.exceptions import (
    CarrierError,
    ConfigurationError,
    InvalidTransitionError,
    OrderNotFoundError,
    ShipmentNotFoundError,
    StoreError,
    ValidationError,
)
from app.schemas.orders import (
    ActivityType,
    HfdSettings,
    Order,
    OrderCreate,
    OrderStatus,
    OrderUpdate,
    Shipment,
    ShipmentRef,
    ShipmentStatus,
)
from app.services.hfd_payload import build_shipment_request
from app.services.hfd_service import HfdService

S = OrderStatus

# 手动状态变更允许的流转（界面上提供的按钮）
MANUAL_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    S.PENDING: frozenset({S.PROCESSED, S.IN_PROCESS}),
    S.PROCESSED: frozenset({S.IN_PROCESS, S.SHIPPED}),
    S.IN_PROCESS: frozenset({S.PROCESSED, S.SHIPPED}),
    S.SHIPPED: frozenset({S.DELIVERED}),
    S.ERROR: frozenset({S.PENDING}),
    S.DELIVERED: frozenset(),
}

# 拣货流程阶段 -> (目标状态, 日志类型)
STAGES: dict[str, tuple[OrderStatus, ActivityType]] = {
    "verify": (S.PROCESSED, ActivityType.ORDER_VERIFIED),
    "assign": (S.PROCESSED, ActivityType.READY_FOR_ASSIGNMENT),
    "fulfill": (S.IN_PROCESS, ActivityType.ASSIGNED_TO_PICKER),
}
STAGE_SOURCE_STATUSES = frozenset({S.PENDING, S.PROCESSED, S.IN_PROCESS})

# 单条发货允许的来源状态（error 即"重新发送"）
DISPATCHABLE_STATUSES = frozenset({S.PENDING, S.PROCESSED, S.IN_PROCESS, S.ERROR})


class OrderService:
    """订单业务服务；所有方法显式接收 owner_id"""

    def __init__(self, store: Any, gateway: HfdService, settings: Optional[Settings] = None):
        self.store = store
        self.gateway = gateway
        self.settings = settings or get_settings()

    async def _log(self, owner_id: str, order_id: str, activity_type: ActivityType, details: Optional[dict] = None) -> None:
        try:
            await self.store.append_log(owner_id, order_id, activity_type.value, details or {})
        except StoreError as e:
            logger.warning(f"写入订单日志失败 order_id={order_id} type={activity_type.value}: {e}")

    async def get_order(self, owner_id: str, order_id: str) -> Order:
        order = await self.store.get_order(owner_id, order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def create_order(self, owner_id: str, data: OrderCreate, *, source: str = "manual") -> Order:
        order = await self.store.insert_order(owner_id, data)
        logger.info(f"新订单: order_number={order.order_number} platform={order.platform.value} source={source}")
        await self._log(owner_id, order.id, ActivityType.ORDER_CREATED, {"platform": order.platform.value, "source": source})
        return order

    async def update_status(self, owner_id: str, order_id: str, new_status: OrderStatus) -> Order:
        order = await self.get_order(owner_id, order_id)
        new_status = OrderStatus(new_status)
        if new_status not in MANUAL_TRANSITIONS[order.status]:
            raise InvalidTransitionError(order.status.value, new_status.value)

        updated = await self.store.update_status(owner_id, order_id, new_status)
        if updated is None:
            raise OrderNotFoundError(order_id)
        logger.info(f"订单 {order.order_number} 状态: {order.status.value} -> {new_status.value}")
        await self._log(
            owner_id,
            order_id,
            ActivityType.STATUS_UPDATED,
            {"new_status": new_status.value, "previous_status": order.status.value},
        )
        return updated

    async def advance_stage(self, owner_id: str, order_id: str, stage: str) -> Order:
        if stage not in STAGES:
            raise ValidationError(["stage"], f"未知阶段: {stage}")
        target, activity = STAGES[stage]
        order = await self.get_order(owner_id, order_id)
        if order.status not in STAGE_SOURCE_STATUSES:
            raise InvalidTransitionError(order.status.value, target.value)

        updated = await self.store.update_status(owner_id, order_id, target)
        if updated is None:
            raise OrderNotFoundError(order_id)
        await self._log(owner_id, order_id, activity, {"stage": stage, "previous_status": order.status.value})
        return updated

    async def edit_order(self, owner_id: str, order_id: str, update: OrderUpdate) -> Order:
        fields = update.model_dump(exclude_unset=True)
        updated = await self.store.update_fields(owner_id, order_id, fields)
        if updated is None:
            raise OrderNotFoundError(order_id)
        await self._log(owner_id, order_id, ActivityType.ORDER_UPDATED, {"updated_fields": sorted(fields)})
        return updated

    async def soft_delete(self, owner_id: str, order_id: str) -> Order:
        deleted = await self.store.soft_delete(owner_id, order_id)
        if deleted is None:
            raise OrderNotFoundError(order_id)
        logger.info(f"订单已删除: {deleted.order_number}")
        await self._log(owner_id, order_id, ActivityType.ORDER_DELETED)
        return deleted

    async def restore(self, owner_id: str, order_id: str) -> Order:
        restored = await self.store.restore(owner_id, order_id)
        if restored is None:
            raise OrderNotFoundError(order_id)
        logger.info(f"订单已恢复: {restored.order_number}")
        await self._log(owner_id, order_id, ActivityType.ORDER_RESTORED)
        return restored

    async def load_carrier_settings(self, owner_id: str) -> HfdSettings:
        """读取用户的 HFD 配置；缺失或不完整时抛 ConfigurationError"""
        credentials = await self.store.get_hfd_settings(owner_id)
        if credentials is None:
            raise ConfigurationError("未找到 HFD 配置，请先在设置中填写 HFD 账号")
        if not credentials.is_complete():
            raise ConfigurationError(f"HFD 配置不完整，缺少: {', '.join(credentials.missing_fields())}")
        return credentials

    async def dispatch_to_carrier(
        self,
        owner_id: str,
        order: Order,
        *,
        credentials: Optional[HfdSettings] = None,
        context: str = "single_send",
    ) -> ShipmentRef:
        """
        把订单发往 HFD。

        - 配置缺失：ConfigurationError，无任何副作用
        - 收件信息不全：ValidationError，不发请求、不改状态，记一条 shipment_creation_failed
        - HFD 失败（重试用尽或不可重试，或网关抛出其他异常）：状态改为 error，
          记 shipment_creation_failed，再抛 CarrierError
        - 成功：写 shipments，状态改为 shipped，记 shipment_created
        """
        if order.is_deleted:
            raise OrderNotFoundError(order.id)
        if order.status not in DISPATCHABLE_STATUSES:
            raise InvalidTransitionError(order.status.value, OrderStatus.SHIPPED.value)
        if credentials is None:
            credentials = await self.load_carrier_settings(owner_id)

        try:
            request = build_shipment_request(order, credentials, self.settings)
        except ValidationError as e:
            logger.warning(f"订单 {order.order_number} 无法生成运单: {e.message}")
            await self._log(
                owner_id,
                order.id,
                ActivityType.SHIPMENT_CREATION_FAILED,
                {"error": e.message, "missing_fields": e.missing_fields, "context": context},
            )
            raise

        try:
            result = await self.gateway.create_shipment(request, credentials)
        except (ConfigurationError, ValidationError):
            raise
        except Exception as e:
            error = e if isinstance(e, CarrierError) else CarrierError(f"HFD 发货异常: {e!r}")
            logger.warning(f"订单 {order.order_number} 发往 HFD 失败: {error.message}")
            await self.store.update_status(owner_id, order.id, OrderStatus.ERROR)
            await self._log(
                owner_id,
                order.id,
                ActivityType.SHIPMENT_CREATION_FAILED,
                {"error": error.message, "error_code": error.error_code, "previous_status": order.status.value, "context": context},
            )
            if error is e:
                raise
            raise error from e

        shipment = await self.store.insert_shipment(
            owner_id,
            Shipment(
                order_id=order.id,
                hfd_shipment_number=result.shipment_number,
                tracking_number=result.tracking_number,
                status=ShipmentStatus.SENT_TO_HFD,
                shipment_data=result.raw,
            ),
        )
        await self.store.update_status(owner_id, order.id, OrderStatus.SHIPPED)
        await self._log(
            owner_id,
            order.id,
            ActivityType.SHIPMENT_CREATED,
            {
                "hfd_shipment_number": result.shipment_number,
                "tracking_number": result.tracking_number,
                "shipment_id": shipment.id,
                "previous_status": order.status.value,
                "context": context,
            },
        )
        logger.info(f"订单 {order.order_number} 已发货，HFD 运单号 {result.shipment_number}")
        return ShipmentRef(
            order_id=order.id,
            shipment_id=shipment.id,
            hfd_shipment_number=result.shipment_number,
            tracking_number=result.tracking_number,
            label_url=self.gateway.shipping_label_url(result.shipment_number),
        )

    async def refresh_shipment_status(self, owner_id: str, shipment_id: str) -> Shipment:
        """向 HFD 查询运单最新状态，保存原始数据；能识别的状态同步到 shipments.status"""
        shipment = await self.store.get_shipment(owner_id, shipment_id)
        if shipment is None:
            raise ShipmentNotFoundError(shipment_id)
        if not shipment.hfd_shipment_number:
            raise ValidationError(["hfd_shipment_number"], "运单没有 HFD 运单号，无法查询")

        credentials = await self.load_carrier_settings(owner_id)
        data = await self.gateway.get_shipment_status(shipment.hfd_shipment_number, credentials)
        status = _carrier_status(data) or shipment.status
        updated = await self.store.update_shipment_status(owner_id, shipment_id, status.value, data)
        if updated is None:
            raise ShipmentNotFoundError(shipment_id)
        return updated


def _carrier_status(data: dict) -> Optional[ShipmentStatus]:
    value = data.get("status") or data.get("shipmentStatus") or data.get("shipment_status")
    if not isinstance(value, str):
        return None
    try:
        return ShipmentStatus(value.strip().lower())
    except ValueError:
        return None
