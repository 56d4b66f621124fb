"""
HFD 相关 Schema

请求体字段名使用 HFD 接口的 camelCase（nameTo / cityName / streetName ...），
Python 侧用 snake_case，序列化时 model_dump(by_alias=True)。
"""
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class HfdShipmentRequest(BaseModel):
    """创建运单请求"""
    client_number: str
    shipment_type_code: str
    cargo_type_haloch: str
    mesira_isuf: str = "מסירה"  # 派送
    packs_haloch: str = "1"
    name_to: str
    city_name: str
    street_name: str
    house_num: str = ""
    tel_first: str = ""
    email: Optional[str] = None
    zip_code: Optional[str] = None
    address_remarks: Optional[str] = None
    reference_num1: str = ""
    reference_num2: str = ""
    products_price: float = 0
    product_price_currency: str = "ILS"
    shipment_weight: float = 500
    shipment_remarks: Optional[str] = None
    sender_name: Optional[str] = None
    sender_address: Optional[str] = None
    sender_city: Optional[str] = None
    sender_zip: Optional[str] = None
    sender_phone: Optional[str] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class HfdShipmentResult(BaseModel):
    """HFD 返回（已统一字段大小写）"""
    shipment_number: Optional[str] = None
    tracking_number: Optional[str] = None
    reference_number1: Optional[str] = None
    reference_number2: Optional[str] = None
    delivery_line: Optional[int] = None
    delivery_area: Optional[int] = None
    existing_shipment_number: Optional[str] = None
    sorting_code: Optional[int] = None
    pickup_code: Optional[int] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    raw: dict[str, Any] = {}

    model_config = ConfigDict(from_attributes=True)
