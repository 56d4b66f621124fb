"""
批量操作结果
"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, computed_field


class BulkOutcome(str, Enum):
    NOTHING_SELECTED = "nothing_selected"  # 没选任何（有效的）订单
    NONE_ELIGIBLE = "none_eligible"        # 选了，但没有一条处于可发货状态
    COMPLETED = "completed"                # 至少处理了一条


class BulkResult(BaseModel):
    """
    success_count + error_count == 实际处理条数
    success_count + error_count + skipped_count == 选中且存在的订单数
    批量删除不做状态筛选，skipped_count 为 None。
    """
    action: str
    outcome: BulkOutcome
    selected_count: int = 0
    success_count: int = 0
    error_count: int = 0
    skipped_count: Optional[int] = None
    errors: list[str] = []
    succeeded_ids: list[str] = []
    failed_ids: list[str] = []

    model_config = ConfigDict(from_attributes=True)

    @property
    def processed_count(self) -> int:
        return self.success_count + self.error_count

    @computed_field
    @property
    def summary(self) -> str:
        if self.outcome == BulkOutcome.NOTHING_SELECTED:
            return "未选择任何订单"
        if self.outcome == BulkOutcome.NONE_ELIGIBLE:
            return f"选中的 {self.selected_count} 条订单都不处于可发货状态"

        if self.error_count == 0:
            text = f"全部成功: {self.success_count} 条"
        elif self.success_count == 0:
            text = f"全部失败: {self.error_count} 条"
        else:
            text = f"部分成功: 成功 {self.success_count} 条，失败 {self.error_count} 条"
        if self.skipped_count:
            text += f"；{self.skipped_count} 条因状态不符被跳过"
        return text
