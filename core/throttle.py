"""
节流控制模块

每次派发前等待固定延迟，或在 [min, max] 区间内均匀取值的随机延迟（毫秒）
"""
import asyncio
import random
from typing import Optional

from config import ThrottleConfig


class Throttle:
    """派发节流控制器（按派发槽位独立等待）"""

    def __init__(self, min_ms: float = 0, max_ms: Optional[float] = None):
        if min_ms < 0 or (max_ms is not None and max_ms < min_ms):
            raise ValueError(f"无效的节流区间: [{min_ms}, {max_ms}]")
        self.min_ms = min_ms
        self.max_ms = max_ms

    @classmethod
    def from_config(cls, throttle_config: ThrottleConfig) -> "Throttle":
        return cls(throttle_config.min_ms, throttle_config.max_ms)

    @property
    def enabled(self) -> bool:
        return self.min_ms > 0 or bool(self.max_ms)

    def delay(self) -> float:
        """本次延迟（毫秒）"""
        if self.max_ms is None or self.max_ms == self.min_ms:
            return self.min_ms
        return random.uniform(self.min_ms, self.max_ms)

    async def wait(self) -> float:
        """等待一次延迟，返回实际等待的毫秒数"""
        delay = self.delay()
        if delay > 0:
            await asyncio.sleep(delay / 1000)
        return delay
