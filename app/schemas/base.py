"""
基础 Schema 模块
"""
from typing import Any, Generic, TypeVar, Optional
from pydantic import BaseModel, ConfigDict

T = TypeVar("T")


class BaseResponse(BaseModel, Generic[T]):
    """统一响应格式"""
    success: bool = True
    code: int = 200
    data: Optional[T] = None
    message: str = "操作成功"

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def ok(cls, data: Any = None, message: str = "操作成功") -> "BaseResponse":
        return cls(data=data, message=message)

    @classmethod
    def fail(cls, code: int, message: str, data: Any = None) -> "BaseResponse":
        return cls(success=False, code=code, message=message, data=data)
