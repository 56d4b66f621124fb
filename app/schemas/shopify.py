"""
Shopify 拉单结果
"""
from pydantic import BaseModel, ConfigDict


class ShopifySyncResult(BaseModel):
    """一轮同步的统计"""
    fetched: int = 0
    created: int = 0
    skipped: int = 0  # 已存在，按 (platform, external_id) 判断
    failed: int = 0
    order_ids: list[str] = []

    model_config = ConfigDict(from_attributes=True)
