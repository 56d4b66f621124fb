"""
统一的重试策略：指数退避，只重试可重试的错误。
"""
import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

T = TypeVar("T")


def _never(exc: BaseException) -> bool:
    return False


@dataclass
class RetryPolicy:
    """
    max_attempts: 总尝试次数（含第一次）
    base_delay: 第一次重试前等待秒数，之后每次乘以 multiplier（2s, 4s, ...）
    retryable: 判断异常是否值得重试；返回 False 时立即上抛
    sleep: 可注入，测试里替换成不等待的版本
    """
    max_attempts: int = 3
    base_delay: float = 2.0
    multiplier: float = 2.0
    retryable: Callable[[BaseException], bool] = _never
    sleep: Callable[[float], Awaitable[Any]] = field(default=asyncio.sleep, repr=False)

    def delay_for(self, attempt: int) -> float:
        """第 attempt 次失败后的等待时间（attempt 从 1 开始）"""
        return self.base_delay * (self.multiplier ** (attempt - 1))

    async def run(self, operation: Callable[[], Awaitable[T]], *, name: str = "operation") -> T:
        attempt = 1
        while True:
            try:
                return await operation()
            except Exception as e:
                if not self.retryable(e):
                    raise
                if attempt >= self.max_attempts:
                    logger.error(f"{name}: 第 {attempt}/{self.max_attempts} 次失败，放弃重试: {e}")
                    raise
                delay = self.delay_for(attempt)
                logger.warning(
                    f"{name}: 第 {attempt}/{self.max_attempts} 次失败: {e}，{delay:.1f} 秒后重试"
                )
                await self.sleep(delay)
                attempt += 1
