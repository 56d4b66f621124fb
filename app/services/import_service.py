"""
CSV / XLSX 订单导入

表头按固定字典映射（大小写、空格不敏感），缺 order_number 的行拒绝，
其它可选字段缺省时使用默认值。每行单独处理，一行失败不影响其它行。
"""
import csv
import io
import json
from typing import Any, Optional

from loguru import logger
from pydantic import BaseModel, ValidationError

from app.core.config import Settings, get_settings
from app.core.exceptions import StoreError
from app.schemas.orders import OrderCreate, Platform
from app.services.order_service import OrderService
from app.sync_utils import parse_datetime, utcnow

# 标准字段 -> 可接受的表头
COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "order_number": ("order_number", "order_no", "order"),
    "external_id": ("external_id",),
    "platform": ("platform",),
    "customer_name": ("customer_name", "name"),
    "customer_email": ("customer_email", "email"),
    "customer_phone": ("customer_phone", "phone"),
    "total_amount": ("total_amount", "total", "amount"),
    "currency": ("currency",),
    "weight": ("weight",),
    "order_date": ("order_date", "date"),
    "shipping_address": ("shipping_address",),
    "street": ("street", "address", "address1"),
    "house_number": ("house_number", "house_num"),
    "city": ("city",),
    "zip": ("zip", "zip_code", "postal_code"),
    "country": ("country",),
}
_ALIAS_LOOKUP = {alias: field for field, aliases in COLUMN_ALIASES.items() for alias in aliases}
_FLAT_ADDRESS_FIELDS = ("street", "house_number", "city", "zip", "country")


class ImportResult(BaseModel):
    success: int = 0
    errors: list[str] = []
    order_ids: list[str] = []


class RowError(Exception):
    def __init__(self, problems: list[str]):
        super().__init__("; ".join(problems))
        self.problems = problems


def _describe_validation(exc: ValidationError) -> str:
    """pydantic 校验错误 -> "字段: 原因; ..." """
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or '订单'}: {err['msg']}" for err in exc.errors()
    )


def _normalize_header(name: Any) -> str:
    return "_".join(str(name or "").strip().lower().split())


def _map_row(raw: dict) -> dict:
    row: dict[str, Any] = {}
    for key, value in raw.items():
        field = _ALIAS_LOOKUP.get(_normalize_header(key))
        if field is None or field in row:
            continue
        if isinstance(value, str):
            value = value.strip()
        if value not in (None, ""):
            row[field] = value
    return row


def read_csv(content: bytes) -> list[dict]:
    text = content.decode("utf-8-sig")
    return [_map_row(r) for r in csv.DictReader(io.StringIO(text))]


def read_xlsx(content: bytes) -> list[dict]:
    """第一个工作表，第一行非空行作为表头"""
    from openpyxl import load_workbook

    try:
        wb = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except Exception as e:
        raise ValueError(f"无法读取 XLSX 文件: {e}") from e
    ws = wb.active
    header: list[str] = []
    rows: list[dict] = []
    for values in ws.iter_rows(values_only=True):
        if not header:
            if any(v not in (None, "") for v in values):
                header = [str(v) if v is not None else "" for v in values]
            continue
        if not any(v not in (None, "") for v in values):
            continue
        rows.append(_map_row(dict(zip(header, values))))
    wb.close()
    return rows


def _to_float(row: dict, field: str, problems: list[str]) -> Optional[float]:
    value = row.get(field)
    if value is None:
        return None
    try:
        return float(str(value).replace(",", ""))
    except ValueError:
        problems.append(f"{field} 必须是数字")
        return None


def row_to_order(row: dict, settings: Optional[Settings] = None) -> OrderCreate:
    """一行 -> OrderCreate；所有问题一次性通过 RowError 报出"""
    settings = settings or get_settings()
    problems: list[str] = []

    order_number = str(row.get("order_number") or "").strip()
    if not order_number:
        problems.append("缺少 order_number")

    platform = str(row.get("platform") or Platform.MANUAL.value).strip().lower()
    if platform not in {p.value for p in Platform}:
        problems.append("platform 必须是 manual、wix 或 shopify")

    total_amount = _to_float(row, "total_amount", problems)
    weight = _to_float(row, "weight", problems)

    shipping_address: Optional[dict] = None
    if "shipping_address" in row:
        raw_address = row["shipping_address"]
        try:
            shipping_address = json.loads(raw_address) if isinstance(raw_address, str) else raw_address
        except json.JSONDecodeError:
            problems.append("shipping_address 不是合法的 JSON")
        else:
            if shipping_address is not None and not isinstance(shipping_address, dict):
                problems.append("shipping_address 必须是 JSON 对象")
    elif any(f in row for f in _FLAT_ADDRESS_FIELDS):
        shipping_address = {f: row.get(f) for f in _FLAT_ADDRESS_FIELDS}
        shipping_address["name"] = row.get("customer_name")
        shipping_address["phone"] = row.get("customer_phone")

    if problems:
        raise RowError(problems)

    return OrderCreate(
        order_number=order_number,
        external_id=str(row.get("external_id") or order_number),
        platform=Platform(platform),
        customer_name=row.get("customer_name"),
        customer_email=row.get("customer_email"),
        customer_phone=str(row["customer_phone"]) if row.get("customer_phone") is not None else None,
        total_amount=total_amount,
        currency=str(row.get("currency") or settings.DEFAULT_CURRENCY),
        weight=weight,
        order_date=parse_datetime(row.get("order_date")) or utcnow(),
        shipping_address=shipping_address,
    )


def read_orders_file(filename: str, content: bytes) -> list[dict]:
    """按扩展名选择解析方式；不支持的类型抛 ValueError"""
    name = (filename or "").lower()
    if name.endswith(".csv"):
        return read_csv(content)
    if name.endswith(".xlsx"):
        return read_xlsx(content)
    raise ValueError("不支持的文件类型，请上传 CSV 或 XLSX 文件")


async def import_orders(order_service: OrderService, owner_id: str, filename: str, content: bytes) -> ImportResult:
    result = ImportResult()
    try:
        rows = read_orders_file(filename, content)
    except (ValueError, UnicodeDecodeError) as e:
        result.errors.append(str(e))
        return result
    logger.info(f"导入文件 {filename}: 共 {len(rows)} 行")

    for i, row in enumerate(rows, 1):
        try:
            data = row_to_order(row)
        except RowError as e:
            result.errors.append(f"第 {i} 行: {e}")
            continue
        except ValidationError as e:
            result.errors.append(f"第 {i} 行: {_describe_validation(e)}")
            continue
        try:
            order = await order_service.create_order(owner_id, data, source="file_import")
        except StoreError as e:
            logger.warning(f"导入第 {i} 行保存失败: {e}")
            result.errors.append(f"第 {i} 行: 保存订单失败 - {e}")
            continue
        result.success += 1
        result.order_ids.append(order.id)

    logger.info(f"导入完成: 成功 {result.success} 行，失败 {len(result.errors)} 行")
    return result
