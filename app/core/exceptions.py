"""
业务异常定义。

API 层按类型映射 HTTP 状态码（见 app/api/errors.py）；批量操作在单条订单边界捕获并计数。
"""
from typing import Optional


class OrderDeskError(Exception):
    """所有业务异常的基类"""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(OrderDeskError):
    """HFD 账号未配置或配置不完整（不会发出任何网络请求）"""

    status_code = 409


class ValidationError(OrderDeskError):
    """订单数据不足以生成运单，missing_fields 列出全部缺失字段"""

    status_code = 422

    def __init__(self, missing_fields: list[str], message: Optional[str] = None):
        self.missing_fields = list(missing_fields)
        super().__init__(message or f"缺少必填字段: {', '.join(self.missing_fields)}")


class InvalidTransitionError(OrderDeskError):
    """手动状态变更不在允许的流转表内"""

    status_code = 409

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"不允许从 {current} 变更为 {target}")


class CarrierError(OrderDeskError):
    """HFD 拒绝请求，或重试用尽后仍然失败"""

    status_code = 502

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        retryable: bool = False,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.http_status = status_code
        self.error_code = error_code
        self.retryable = retryable
        self.details = details or {}


class StoreError(OrderDeskError):
    """数据库读写失败，原样上抛，核心逻辑不做重试"""

    status_code = 500


class OrderNotFoundError(StoreError):
    """订单不存在、已删除或不属于当前用户"""

    status_code = 404

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"订单不存在: {order_id}")


class ShipmentNotFoundError(StoreError):
    """运单不存在或不属于当前用户"""

    status_code = 404

    def __init__(self, shipment_id: str):
        self.shipment_id = shipment_id
        super().__init__(f"运单不存在: {shipment_id}")
