"""
数据库相关操作统一放在 models 目录。
"""
from app.models.connection import get_connection
from app.models.store import OrderStore

__all__ = [
    "get_connection",
    "OrderStore",
]
