"""
批量发货 / 批量删除
"""
import asyncio
import json

import httpx
import pytest

from app.core.exceptions import ConfigurationError
from app.core.retry import RetryPolicy
from app.schemas.bulk import BulkOutcome, BulkResult
from app.schemas.orders import OrderStatus
from app.services.bulk_service import BulkDispatchService, cap_messages, resolve_selection
from app.services.hfd_service import HfdService, is_retryable
from app.services.order_service import OrderService

from conftest import OWNER, carrier_failure


@pytest.fixture
def bulk(service) -> BulkDispatchService:
    return BulkDispatchService(service, error_limit=3)


def _check_counts(result: BulkResult, attempted: int):
    """attempted 为测试里真正应当发往 HFD（或删除）的订单数"""
    assert result.success_count + result.error_count == attempted
    assert result.processed_count == attempted
    assert len(result.succeeded_ids) + len(result.failed_ids) == attempted
    if result.skipped_count is not None:
        assert result.skipped_count == result.selected_count - attempted


def test_mixed_statuses_skip_ineligible(bulk, store, gateway):
    a = store.add(order_number="A", status=OrderStatus.PENDING)
    b = store.add(order_number="B", status=OrderStatus.PROCESSED)
    c = store.add(order_number="C", status=OrderStatus.DELIVERED)

    result = asyncio.run(bulk.bulk_dispatch(OWNER, [a.id, b.id, c.id]))

    assert (result.success_count, result.error_count, result.skipped_count) == (2, 0, 1)
    assert result.outcome == BulkOutcome.COMPLETED
    assert gateway.dispatched_numbers == ["A", "B"]
    assert store.orders[c.id].status == OrderStatus.DELIVERED
    assert result.summary == "全部成功: 2 条；1 条因状态不符被跳过"
    _check_counts(result, 2)


def test_one_failure_does_not_stop_the_batch(bulk, store, gateway):
    first = store.add(order_number="F1")
    second = store.add(order_number="F2")
    gateway.outcomes["F2"] = carrier_failure("HFD 错误: street not found")

    result = asyncio.run(bulk.bulk_dispatch(OWNER, [first.id, second.id]))

    assert (result.success_count, result.error_count, result.skipped_count) == (1, 1, 0)
    assert store.orders[first.id].status == OrderStatus.SHIPPED
    assert store.orders[second.id].status == OrderStatus.ERROR
    assert result.succeeded_ids == [first.id]
    assert result.failed_ids == [second.id]
    assert result.errors == ["F2: HFD 错误: street not found"]
    assert result.summary.startswith("部分成功")
    _check_counts(result, 2)


def test_transport_failure_marks_order_error(store, settings):
    async def no_sleep(seconds):
        return None

    def handler(request: httpx.Request) -> httpx.Response:
        if json.loads(request.content)["referenceNum1"] == "T2":
            raise httpx.DecodingError("broken gzip stream", request=request)
        return httpx.Response(200, json={"shipmentNumber": "5001", "randNumber": "R5001"})

    policy = RetryPolicy(max_attempts=2, base_delay=0.01, retryable=is_retryable, sleep=no_sleep)
    gateway = HfdService(settings, retry_policy=policy, transport=httpx.MockTransport(handler))
    bulk = BulkDispatchService(OrderService(store, gateway, settings), error_limit=3)
    ok = store.add(order_number="T1")
    broken = store.add(order_number="T2")

    result = asyncio.run(bulk.bulk_dispatch(OWNER, [ok.id, broken.id]))

    assert (result.success_count, result.error_count) == (1, 1)
    assert store.orders[ok.id].status == OrderStatus.SHIPPED
    assert store.orders[broken.id].status == OrderStatus.ERROR
    failed = store.logs_for(broken.id, "shipment_creation_failed")
    assert len(failed) == 1
    assert failed[0].details["context"] == "bulk_send"
    _check_counts(result, 2)


def test_missing_credentials_fail_the_whole_batch(bulk, store, gateway):
    store.hfd_settings.clear()
    orders = [store.add(), store.add()]

    with pytest.raises(ConfigurationError):
        asyncio.run(bulk.bulk_dispatch(OWNER, [o.id for o in orders]))

    assert gateway.calls == []
    assert all(store.orders[o.id].status == OrderStatus.PENDING for o in orders)
    assert store.logs == []


def test_validation_failure_counts_as_error(bulk, store, gateway):
    ok = store.add(order_number="OK")
    bad = store.add(order_number="BAD", address={"name": "Avi", "street": "Allenby 10"})

    result = asyncio.run(bulk.bulk_dispatch(OWNER, [ok.id, bad.id]))

    assert (result.success_count, result.error_count) == (1, 1)
    assert gateway.dispatched_numbers == ["OK"]
    assert store.orders[bad.id].status == OrderStatus.PENDING
    assert store.logs_for(bad.id, "shipment_creation_failed")[0].details["context"] == "bulk_send"


def test_rerun_skips_already_shipped(bulk, store, gateway):
    first = store.add(order_number="R1")
    second = store.add(order_number="R2")
    gateway.outcomes["R2"] = carrier_failure()
    ids = [first.id, second.id]

    asyncio.run(bulk.bulk_dispatch(OWNER, ids))
    # 重新读取最新状态后再次提交同一批
    result = asyncio.run(bulk.bulk_dispatch(OWNER, ids))

    # R1 已 shipped，R2 为 error：都不在批量可发货状态内
    assert result.outcome == BulkOutcome.NONE_ELIGIBLE
    assert result.skipped_count == 2
    assert gateway.dispatched_numbers == ["R1", "R2"]
    _check_counts(result, 0)


def test_nothing_selected(bulk, store, gateway):
    result = asyncio.run(bulk.bulk_dispatch(OWNER, []))
    assert result.outcome == BulkOutcome.NOTHING_SELECTED
    assert (result.selected_count, result.success_count, result.error_count, result.skipped_count) == (0, 0, 0, 0)
    assert result.summary == "未选择任何订单"
    _check_counts(result, 0)


def test_none_eligible_is_distinct_from_nothing_selected(bulk, store, gateway):
    store.hfd_settings.clear()
    shipped = store.add(status=OrderStatus.SHIPPED)
    in_process = store.add(status=OrderStatus.IN_PROCESS)

    # 没有可发货订单时不检查 HFD 配置
    result = asyncio.run(bulk.bulk_dispatch(OWNER, [shipped.id, in_process.id]))

    assert result.outcome == BulkOutcome.NONE_ELIGIBLE
    assert result.selected_count == 2
    assert result.skipped_count == 2
    assert gateway.calls == []


def test_unknown_deleted_and_duplicate_ids_are_dropped(bulk, store, gateway):
    live = store.add(order_number="L1")
    gone = store.add(order_number="L2", deleted=True)

    result = asyncio.run(bulk.bulk_dispatch(OWNER, [live.id, "no-such-id", gone.id, live.id]))

    assert result.selected_count == 1
    assert result.success_count == 1
    assert gateway.dispatched_numbers == ["L1"]


def test_uses_given_snapshot(bulk, store, gateway):
    a = store.add(order_number="S1")
    b = store.add(order_number="S2")

    result = asyncio.run(bulk.bulk_dispatch(OWNER, [a.id, b.id], known_orders=[a]))

    assert result.selected_count == 1
    assert gateway.dispatched_numbers == ["S1"]


def test_error_messages_are_capped(bulk, store, gateway):
    orders = [store.add(order_number=f"E{i}") for i in range(5)]
    for o in orders:
        gateway.outcomes[o.order_number] = carrier_failure()

    result = asyncio.run(bulk.bulk_dispatch(OWNER, [o.id for o in orders]))

    assert result.error_count == 5
    assert len(result.errors) == 4
    assert result.errors[-1] == "+2 条其它错误"
    assert result.summary == "全部失败: 5 条"
    assert all(store.orders[o.id].status == OrderStatus.ERROR for o in orders)


def test_every_dispatch_is_logged_once(bulk, store, gateway):
    orders = [store.add(order_number=f"P{i}") for i in range(3)]
    asyncio.run(bulk.bulk_dispatch(OWNER, [o.id for o in orders]))

    for o in orders:
        created = store.logs_for(o.id, "shipment_created")
        assert len(created) == 1
        shipments = [s for s in store.shipments.values() if s.order_id == o.id]
        assert len(shipments) == 1
        assert created[0].details["hfd_shipment_number"] == shipments[0].hfd_shipment_number


def test_bulk_soft_delete(bulk, store):
    a = store.add(status=OrderStatus.SHIPPED)
    b = store.add(status=OrderStatus.ERROR)

    result = asyncio.run(bulk.bulk_soft_delete(OWNER, [a.id, b.id, "stale"]))

    assert result.action == "delete"
    assert (result.selected_count, result.success_count, result.error_count) == (2, 2, 0)
    assert result.skipped_count is None
    assert asyncio.run(store.list_orders(OWNER)) == []
    _check_counts(result, 2)


def test_bulk_soft_delete_nothing_selected(bulk):
    result = asyncio.run(bulk.bulk_soft_delete(OWNER, []))
    assert result.outcome == BulkOutcome.NOTHING_SELECTED


def test_resolve_selection_keeps_selection_order(store):
    a, b, c = store.add(), store.add(), store.add()
    resolved = resolve_selection([c.id, a.id], [a, b, c])
    assert [o.id for o in resolved] == [c.id, a.id]


def test_cap_messages():
    assert cap_messages(["a", "b"], 3) == ["a", "b"]
    assert cap_messages(["a", "b", "c", "d"], 3) == ["a", "b", "c", "+1 条其它错误"]
