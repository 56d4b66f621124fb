"""
订单、操作日志、运单、HFD 配置相关 Schema
"""
import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.sync_utils import normalize_address


class Platform(str, Enum):
    WIX = "wix"
    SHOPIFY = "shopify"
    MANUAL = "manual"


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSED = "processed"
    IN_PROCESS = "in_process"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    ERROR = "error"


class ShipmentStatus(str, Enum):
    CREATED = "created"
    SENT_TO_HFD = "sent_to_hfd"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    FAILED = "failed"


class ActivityType(str, Enum):
    """order_logs.activity_type 常用取值（列本身是自由文本）"""
    ORDER_CREATED = "order_created"
    ORDER_UPDATED = "order_updated"
    ORDER_DELETED = "order_deleted"
    ORDER_RESTORED = "order_restored"
    STATUS_UPDATED = "status_updated"
    SHIPMENT_CREATED = "shipment_created"
    SHIPMENT_CREATION_FAILED = "shipment_creation_failed"
    ORDER_VERIFIED = "order_verified"
    READY_FOR_ASSIGNMENT = "ready_for_assignment"
    ASSIGNED_TO_PICKER = "assigned_to_picker"


def _loads_json(value: Any) -> Any:
    """asyncpg 默认把 jsonb 返回成字符串"""
    if isinstance(value, str):
        try:
            return json.loads(value) if value else None
        except json.JSONDecodeError:
            return None
    return value


def _check_currency(value: Any) -> Any:
    """ISO 4217 三位字母代码，统一大写；不合法直接拒绝"""
    if value is None:
        return None
    code = str(value).strip().upper()
    if len(code) != 3 or not code.isalpha():
        raise ValueError(f"currency 必须是三位字母货币代码: {value!r}")
    return code


class Address(BaseModel):
    """统一后的收货地址"""
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    street: Optional[str] = None
    house_number: Optional[str] = None
    city: Optional[str] = None
    zip: Optional[str] = None
    country: Optional[str] = None
    remarks: Optional[str] = None


class _AddressMixin(BaseModel):
    shipping_address: Optional[Address] = None

    @field_validator("shipping_address", mode="before")
    @classmethod
    def _normalize_shipping_address(cls, value: Any) -> Any:
        value = _loads_json(value)
        if isinstance(value, dict):
            return normalize_address(value)
        return value


class Order(_AddressMixin):
    """orders 表一行"""
    id: str
    user_id: str
    external_id: str
    order_number: str
    platform: Platform = Platform.MANUAL
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    total_amount: Optional[float] = None
    currency: Optional[str] = None
    weight: Optional[float] = None
    status: OrderStatus = OrderStatus.PENDING
    order_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None
    deleted_by: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("id", "user_id", "deleted_by", mode="before")
    @classmethod
    def _uuid_to_str(cls, value: Any) -> Any:
        return str(value) if value is not None else None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class OrderCreate(_AddressMixin):
    """新建订单（手工录入、导入、webhook 共用）"""
    order_number: str = Field(min_length=1)
    external_id: Optional[str] = None
    platform: Platform = Platform.MANUAL
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    total_amount: Optional[float] = None
    currency: Optional[str] = None
    weight: Optional[float] = None
    order_date: Optional[datetime] = None

    @field_validator("currency", mode="before")
    @classmethod
    def _currency(cls, value: Any) -> Any:
        return _check_currency(value)


class OrderUpdate(_AddressMixin):
    """可编辑字段；只更新显式传入的字段"""
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    total_amount: Optional[float] = None
    currency: Optional[str] = None
    weight: Optional[float] = None

    @field_validator("currency", mode="before")
    @classmethod
    def _currency(cls, value: Any) -> Any:
        return _check_currency(value)


class OrderLog(BaseModel):
    """order_logs 表一行（只追加）"""
    id: Optional[str] = None
    order_id: str
    activity_type: str
    details: dict[str, Any] = {}
    created_at: Optional[datetime] = None

    @field_validator("id", "order_id", mode="before")
    @classmethod
    def _uuid_to_str(cls, value: Any) -> Any:
        return str(value) if value is not None else None

    @field_validator("details", mode="before")
    @classmethod
    def _details(cls, value: Any) -> Any:
        return _loads_json(value) or {}


class Shipment(BaseModel):
    """shipments 表一行"""
    id: Optional[str] = None
    order_id: str
    hfd_shipment_number: Optional[str] = None
    tracking_number: Optional[str] = None
    status: ShipmentStatus = ShipmentStatus.CREATED
    shipment_data: dict[str, Any] = {}
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("id", "order_id", mode="before")
    @classmethod
    def _uuid_to_str(cls, value: Any) -> Any:
        return str(value) if value is not None else None

    @field_validator("shipment_data", mode="before")
    @classmethod
    def _shipment_data(cls, value: Any) -> Any:
        return _loads_json(value) or {}


class HfdSettings(BaseModel):
    """每个用户一份的 HFD 账号配置"""
    client_number: Optional[str] = None
    token: Optional[str] = None
    shipment_type_code: Optional[str] = None
    cargo_type_haloch: Optional[str] = None

    @field_validator("client_number", "token", "shipment_type_code", "cargo_type_haloch", mode="before")
    @classmethod
    def _to_str(cls, value: Any) -> Any:
        if value is None:
            return None
        return str(value).strip() or None

    def missing_fields(self) -> list[str]:
        return [
            name
            for name in ("client_number", "token", "shipment_type_code", "cargo_type_haloch")
            if not getattr(self, name)
        ]

    def is_complete(self) -> bool:
        return not self.missing_fields()


class ShipmentRef(BaseModel):
    """单条发货成功后返回给调用方"""
    order_id: str
    shipment_id: Optional[str] = None
    hfd_shipment_number: str
    tracking_number: Optional[str] = None
    label_url: Optional[str] = None


class StatusUpdateRequest(BaseModel):
    status: OrderStatus


class StageRequest(BaseModel):
    stage: str


class BulkRequest(BaseModel):
    order_ids: list[str] = []
