"""
批量发货 / 批量删除

逐条顺序处理（不并发）：HFD 接口对频率敏感，单条请求内部已有重试，
顺序执行也便于把失败准确归到具体订单。单条失败只计数，不中断整批。
"""
from typing import Iterable, Optional

from loguru import logger

from app.core.config import get_settings
from app.schemas.bulk import BulkOutcome, BulkResult
from app.schemas.orders import Order, OrderStatus
from app.services.order_service import OrderService

ELIGIBLE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.PROCESSED})


def resolve_selection(selected_ids: Iterable[str], known_orders: Iterable[Order]) -> list[Order]:
    """按选中顺序取出存在且未删除的订单；未知或过期的 id 直接丢弃，重复 id 只算一次"""
    by_id = {o.id: o for o in known_orders if not o.is_deleted}
    seen: set[str] = set()
    resolved = []
    for order_id in selected_ids:
        if order_id in seen or order_id not in by_id:
            continue
        seen.add(order_id)
        resolved.append(by_id[order_id])
    return resolved


def cap_messages(messages: list[str], limit: int) -> list[str]:
    """只保留前 limit 条，其余合并成一条"""
    if len(messages) <= limit:
        return list(messages)
    return messages[:limit] + [f"+{len(messages) - limit} 条其它错误"]


class BulkDispatchService:
    """批量操作控制器"""

    def __init__(self, order_service: OrderService, error_limit: Optional[int] = None):
        self.order_service = order_service
        self.error_limit = error_limit if error_limit is not None else get_settings().BULK_ERROR_MESSAGE_LIMIT

    async def _known_orders(self, owner_id: str, known_orders: Optional[list[Order]]) -> list[Order]:
        if known_orders is not None:
            return known_orders
        return await self.order_service.store.list_orders(owner_id)

    async def bulk_dispatch(
        self,
        owner_id: str,
        selected_ids: Iterable[str],
        known_orders: Optional[list[Order]] = None,
    ) -> BulkResult:
        """
        批量发往 HFD。
        只处理 pending / processed 的订单，其余计入 skipped_count，不会为它们调用 HFD。
        HFD 配置缺失时在处理任何订单之前抛 ConfigurationError。
        """
        selected = resolve_selection(selected_ids, await self._known_orders(owner_id, known_orders))
        eligible = [o for o in selected if o.status in ELIGIBLE_STATUSES]
        skipped = len(selected) - len(eligible)

        if not eligible:
            outcome = BulkOutcome.NONE_ELIGIBLE if selected else BulkOutcome.NOTHING_SELECTED
            logger.info(f"批量发货: 无可发货订单 (选中 {len(selected)} 条)")
            return BulkResult(
                action="dispatch",
                outcome=outcome,
                selected_count=len(selected),
                skipped_count=skipped,
            )

        credentials = await self.order_service.load_carrier_settings(owner_id)
        logger.info(f"批量发货开始: 共 {len(eligible)} 条，跳过 {skipped} 条")

        result = BulkResult(
            action="dispatch",
            outcome=BulkOutcome.COMPLETED,
            selected_count=len(selected),
            skipped_count=skipped,
        )
        messages: list[str] = []
        for idx, order in enumerate(eligible, 1):
            try:
                ref = await self.order_service.dispatch_to_carrier(
                    owner_id, order, credentials=credentials, context="bulk_send"
                )
            except Exception as e:
                logger.warning(f"  [{idx}/{len(eligible)}] 订单 {order.order_number} 发货失败: {e}")
                result.error_count += 1
                result.failed_ids.append(order.id)
                messages.append(f"{order.order_number}: {e}")
                continue
            logger.info(f"  [{idx}/{len(eligible)}] 订单 {order.order_number} 已发货: {ref.hfd_shipment_number}")
            result.success_count += 1
            result.succeeded_ids.append(order.id)

        result.errors = cap_messages(messages, self.error_limit)
        logger.info(f"批量发货完成: {result.summary}")
        return result

    async def bulk_soft_delete(
        self,
        owner_id: str,
        selected_ids: Iterable[str],
        known_orders: Optional[list[Order]] = None,
    ) -> BulkResult:
        """批量软删除：不做状态筛选，其它与批量发货相同"""
        selected = resolve_selection(selected_ids, await self._known_orders(owner_id, known_orders))
        if not selected:
            return BulkResult(action="delete", outcome=BulkOutcome.NOTHING_SELECTED)

        result = BulkResult(action="delete", outcome=BulkOutcome.COMPLETED, selected_count=len(selected))
        messages: list[str] = []
        for order in selected:
            try:
                await self.order_service.soft_delete(owner_id, order.id)
            except Exception as e:
                logger.warning(f"  订单 {order.order_number} 删除失败: {e}")
                result.error_count += 1
                result.failed_ids.append(order.id)
                messages.append(f"{order.order_number}: {e}")
                continue
            result.success_count += 1
            result.succeeded_ids.append(order.id)

        result.errors = cap_messages(messages, self.error_limit)
        logger.info(f"批量删除完成: {result.summary}")
        return result
