"""
HFD 承运商服务层 - REST API
所有请求都是 POST {HFD_API_BASE_URL}/{endpoint}，JSON 请求体。

网络错误、超时、5xx 按 RetryPolicy 指数退避重试；4xx 和业务错误（errorCode）不重试。
HFD 返回的字段大小写不统一（snake_case / camelCase 都出现过），统一在 normalize_response 里处理，
调用方只看 HfdShipmentResult。
"""
from typing import Any, Optional

import httpx
from loguru import logger

from app.core.config import Settings, get_settings
from app.core.exceptions import CarrierError, ConfigurationError
from app.core.retry import RetryPolicy
from app.schemas.hfd import HfdShipmentRequest, HfdShipmentResult
from app.schemas.orders import HfdSettings

# HTTP 状态码 -> 可读提示（HFD 没有返回 errorMessage 时使用）
HTTP_ERROR_MESSAGES: dict[int, str] = {
    400: "HFD 拒绝了请求，运单数据不合法",
    401: "HFD token 无效或已过期",
    403: "HFD 账号无权限创建运单",
    404: "HFD 接口地址不存在",
    409: "HFD 中已存在相同参考号的运单",
    429: "HFD 请求过于频繁",
}


def is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, CarrierError) and exc.retryable


def _pick(data: dict, *keys: str) -> Any:
    """按顺序取第一个非空值"""
    for key in keys:
        value = data.get(key)
        if value is not None and value != "":
            return value
    return None


def _as_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return None if text in ("", "0") else text


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(value) if value is not None and value != "" else None
    except (TypeError, ValueError):
        return None


def normalize_response(data: dict) -> HfdShipmentResult:
    """HFD 返回 -> HfdShipmentResult（兼容 snake_case / camelCase 以及旧接口的 parcel_id / random_code）"""
    return HfdShipmentResult(
        shipment_number=_as_str(_pick(data, "shipment_number", "shipmentNumber", "parcel_id", "parcelId")),
        tracking_number=_as_str(
            _pick(data, "rand_number", "randNumber", "random_code", "randomCode", "tracking_number", "trackingNumber")
        ),
        reference_number1=_as_str(_pick(data, "reference_number_1", "referenceNumber1")),
        reference_number2=_as_str(_pick(data, "reference_number_2", "referenceNumber2")),
        delivery_line=_as_int(_pick(data, "delivery_line", "deliveryLine")),
        delivery_area=_as_int(_pick(data, "delivery_area", "deliveryArea")),
        existing_shipment_number=_as_str(_pick(data, "existing_shipment_number", "existingShipmentNumber")),
        sorting_code=_as_int(_pick(data, "sorting_code", "sortingCode")),
        pickup_code=_as_int(_pick(data, "pickup_code", "pickUpCode", "pickupCode")),
        error_code=_as_str(_pick(data, "error_code", "errorCode")),
        error_message=_as_str(_pick(data, "error_message", "errorMessage", "error")),
        raw=data,
    )


def describe_error(error_code: Optional[str], error_message: Optional[str], status_code: Optional[int] = None) -> str:
    """HFD 错误 -> 可读文本：优先用 HFD 给的文字，其次 HTTP 状态码对照表，最后兜底显示错误码"""
    if error_message:
        return f"HFD 错误: {error_message}"
    if status_code in HTTP_ERROR_MESSAGES:
        return HTTP_ERROR_MESSAGES[status_code]
    if error_code:
        return f"HFD 错误码: {error_code}"
    if status_code:
        return f"HFD 请求失败 (HTTP {status_code})"
    return "HFD 未知错误"


class HfdService:
    """HFD 承运商网关"""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        retry_policy: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self.base_url = self.settings.HFD_API_BASE_URL.rstrip("/")
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=self.settings.HFD_MAX_ATTEMPTS,
            base_delay=self.settings.HFD_RETRY_BASE_DELAY,
            retryable=is_retryable,
        )
        # 测试时注入 httpx.MockTransport
        self.transport = transport

    @staticmethod
    def _check_credentials(credentials: Optional[HfdSettings]) -> HfdSettings:
        if credentials is None or not credentials.is_complete():
            missing = credentials.missing_fields() if credentials else ["hfd_settings"]
            raise ConfigurationError(f"HFD 账号未配置完整，缺少: {', '.join(missing)}")
        return credentials

    async def _post(self, endpoint: str, payload: dict, token: str) -> dict:
        """
        发起一次 HFD 请求（不含重试）
        POST {base}/{endpoint}
        """
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        logger.info(f"请求 HFD: POST {url}")
        logger.debug(f"payload: {payload}")

        async with httpx.AsyncClient(timeout=self.settings.HFD_REQUEST_TIMEOUT, transport=self.transport) as client:
            try:
                response = await client.post(url, headers=headers, json=payload)
            except httpx.TimeoutException as e:
                raise CarrierError(f"HFD 请求超时: {url}", retryable=True) from e
            except httpx.RequestError as e:
                # 连接失败、解码失败、重定向过多等
                raise CarrierError(f"无法连接 HFD: {e}", retryable=True) from e

        try:
            body = response.json()
        except ValueError:
            # 非 JSON 响应按原文本处理
            body = {"message": response.text}
        if not isinstance(body, dict):
            body = {"data": body}

        if response.status_code >= 500:
            logger.error(f"HFD 服务端错误: {response.status_code} - {response.text}")
            raise CarrierError(
                f"HFD 服务端错误 (HTTP {response.status_code})",
                status_code=response.status_code,
                retryable=True,
                details=body,
            )
        if response.status_code >= 400:
            logger.error(f"HFD 请求失败: {response.status_code} - {response.text}")
            result = normalize_response(body)
            raise CarrierError(
                describe_error(result.error_code, result.error_message or body.get("message"), response.status_code),
                status_code=response.status_code,
                error_code=result.error_code,
                details=body,
            )

        logger.debug(f"HFD 响应: {body}")
        return body

    async def create_shipment(self, request: HfdShipmentRequest, credentials: Optional[HfdSettings]) -> HfdShipmentResult:
        """创建运单。成功时保证 shipment_number 非空，否则抛 CarrierError。"""
        credentials = self._check_credentials(credentials)
        payload = request.to_payload()
        logger.info(f"创建 HFD 运单: reference={request.reference_num1}, 收件人={request.name_to}, 城市={request.city_name}")

        body = await self.retry_policy.run(
            lambda: self._post("shipments", payload, credentials.token),
            name=f"HFD 创建运单 {request.reference_num1}",
        )
        result = normalize_response(body)

        if result.error_code or result.error_message:
            raise CarrierError(
                describe_error(result.error_code, result.error_message),
                error_code=result.error_code,
                details=body,
            )
        if not result.shipment_number:
            raise CarrierError("HFD 未返回运单号", details=body)

        logger.info(f"HFD 运单创建成功: shipment_number={result.shipment_number}, tracking={result.tracking_number}")
        return result

    async def get_shipment_status(self, shipment_number: str, credentials: Optional[HfdSettings]) -> dict:
        """查询运单状态，返回 HFD 原始数据（字典）"""
        credentials = self._check_credentials(credentials)
        return await self.retry_policy.run(
            lambda: self._post(f"shipments/{shipment_number}", {}, credentials.token),
            name=f"HFD 查询运单 {shipment_number}",
        )

    async def test_connection(self, credentials: Optional[HfdSettings]) -> tuple[bool, str]:
        """检查账号是否可用；只重试一次，不抛异常"""
        try:
            credentials = self._check_credentials(credentials)
        except ConfigurationError as e:
            return False, e.message

        policy = RetryPolicy(
            max_attempts=2,
            base_delay=self.retry_policy.base_delay,
            retryable=is_retryable,
            sleep=self.retry_policy.sleep,
        )
        payload = {"client_number": credentials.client_number, "token": credentials.token}
        try:
            body = await policy.run(lambda: self._post("test", payload, credentials.token), name="HFD 连接测试")
        except CarrierError as e:
            return False, f"连接测试失败: {e.message}"

        result = normalize_response(body)
        if body.get("success") is False or result.error_code:
            return False, describe_error(result.error_code, result.error_message or body.get("message"))
        return True, "HFD 连接正常"

    def shipping_label_url(self, shipment_number: str) -> str:
        """面单链接（HFD 打印页面，模板 URL）"""
        return (
            f"{self.settings.HFD_LABEL_URL}?APPNAME=run&PRGNAME=ship_print_ws"
            f"&ARGUMENTS=-N{shipment_number},-A,-A,-A,-A,-A,-A,-N,-A"
        )
