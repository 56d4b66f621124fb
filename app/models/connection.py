"""
数据库连接（asyncpg），API 请求与离线拉单脚本共用。
"""
from typing import Any

import asyncpg

from app.core.config import get_settings
from app.core.exceptions import StoreError


async def get_connection() -> Any:
    """
    获取 asyncpg 连接。
    使用前需确保 DATABASE_URL 已配置（.env 或环境变量）。
    """
    dsn = get_settings().database_dsn
    if not dsn:
        raise StoreError("未设置 DATABASE_URL")
    try:
        return await asyncpg.connect(dsn)
    except (OSError, asyncpg.PostgresError) as e:
        raise StoreError(f"数据库连接失败: {e}") from e
