"""
业务异常 -> HTTP 响应（统一 BaseResponse 格式）
"""
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from loguru import logger

from app.core.exceptions import CarrierError, OrderDeskError, ValidationError
from app.schemas.base import BaseResponse


def _error_data(exc: OrderDeskError) -> dict | None:
    if isinstance(exc, ValidationError):
        return {"missing_fields": exc.missing_fields}
    if isinstance(exc, CarrierError):
        return {"error_code": exc.error_code, "carrier_status": exc.http_status}
    return None


async def order_desk_error_handler(request: Request, exc: OrderDeskError) -> JSONResponse:
    if exc.status_code >= 500 and not isinstance(exc, CarrierError):
        logger.error(f"{request.method} {request.url.path} 失败: {exc.message}")
    body = BaseResponse.fail(exc.status_code, exc.message, _error_data(exc))
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(mode="json"))


async def http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
    body = BaseResponse.fail(exc.status_code, str(exc.detail))
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(mode="json"), headers=exc.headers)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(OrderDeskError, order_desk_error_handler)
    app.add_exception_handler(HTTPException, http_error_handler)
