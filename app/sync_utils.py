"""
订单接入（Wix webhook、Shopify 拉单、CSV/XLSX 导入）共用：地址归一化、时间解析。

各平台的收货地址结构不一样，这里每种结构一个函数，统一转成同一组字段：
  name, phone, email, street, house_number, city, zip, country, remarks
核心逻辑（生成运单）只认这一种结构。
"""
import re
from datetime import datetime, timezone
from typing import Any

ADDRESS_FIELDS = ("name", "phone", "email", "street", "house_number", "city", "zip", "country", "remarks")

_HOUSE_NUMBER_RE = re.compile(r"^\d+[\w/-]*$")


def _clean(value: Any) -> str | None:
    """去空白、去掉 CSV 里常见的多余引号；空串视为 None。"""
    if value is None:
        return None
    text = str(value).replace('"', "").strip()
    return text or None


def _join_name(first: Any, last: Any) -> str | None:
    return _clean(f"{first or ''} {last or ''}")


def split_street_and_house(line: str | None) -> tuple[str | None, str | None]:
    """'Dizengoff 114' -> ('Dizengoff', '114')；末尾不是门牌号时原样返回。"""
    line = _clean(line)
    if not line:
        return None, None
    parts = line.split()
    if len(parts) > 1 and _HOUSE_NUMBER_RE.match(parts[-1]):
        return " ".join(parts[:-1]), parts[-1]
    return line, None


def _canonical(**fields: Any) -> dict:
    out = {k: _clean(fields.get(k)) for k in ADDRESS_FIELDS}
    if out["street"] and not out["house_number"]:
        out["street"], out["house_number"] = split_street_and_house(out["street"])
    return out


def address_from_wix(details: dict) -> dict:
    """
    Wix: shippingInfo.shipmentDetails -> {firstName, lastName, phone, email, address: {...}}
    也接受直接传 shipmentDetails.address。
    """
    details = details.get("shipmentDetails", details)
    addr = details.get("address") if isinstance(details.get("address"), dict) else details
    return _canonical(
        name=_join_name(details.get("firstName"), details.get("lastName")),
        phone=details.get("phone"),
        email=details.get("email"),
        street=addr.get("addressLine1") or addr.get("addressLine"),
        city=addr.get("city"),
        zip=addr.get("postalCode") or addr.get("zipCode"),
        country=addr.get("country"),
        remarks=addr.get("addressLine2"),
    )


def address_from_shopify(addr: dict) -> dict:
    """Shopify GraphQL shippingAddress（address1/address2/zip/countryCodeV2）。"""
    return _canonical(
        name=addr.get("name") or _join_name(addr.get("firstName"), addr.get("lastName")),
        phone=addr.get("phone"),
        street=addr.get("address1"),
        city=addr.get("city"),
        zip=addr.get("zip"),
        country=addr.get("countryCodeV2") or addr.get("country"),
        remarks=addr.get("address2"),
    )


def address_from_flat(row: dict) -> dict:
    """CSV / 手工录入的平铺字段。"""
    return _canonical(
        name=row.get("name") or row.get("recipient_name"),
        phone=row.get("phone"),
        email=row.get("email"),
        street=row.get("street") or row.get("address") or row.get("addressLine1"),
        house_number=row.get("house_number") or row.get("houseNum"),
        city=row.get("city"),
        zip=row.get("zip") or row.get("zipCode") or row.get("postalCode"),
        country=row.get("country"),
        remarks=row.get("remarks"),
    )


def normalize_address(raw: dict | None) -> dict | None:
    """按字段特征判断来源结构，转成统一地址字段。已是统一结构的原样返回。"""
    if not raw:
        return None
    if "street" in raw or "house_number" in raw:
        return _canonical(**raw)
    if "shipmentDetails" in raw or isinstance(raw.get("address"), dict) or "addressLine1" in raw or "addressLine" in raw:
        return address_from_wix(raw)
    if "address1" in raw or "countryCodeV2" in raw:
        return address_from_shopify(raw)
    return address_from_flat(raw)


def parse_datetime(value: Any) -> datetime | None:
    """解析 ISO 时间串（兼容结尾 Z）；无时区的按 UTC 处理。解析失败返回 None。"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
