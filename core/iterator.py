"""
迭代器模块

拉取式请求生成器：fn(index, last_req, last_res) -> URL | dict | False
"""
from typing import Any, Callable, Optional
from loguru import logger

from core.errors import ConfigError
from core.job import Request, Response


class IteratorSource:
    """
    迭代器来源

    - 返回 False（或 None）后永久停止
    - 返回字符串/字典则成为 index 位置上的下一个请求
    - 用户函数抛出异常时停止并记录日志
    """

    def __init__(self, fn: Callable[[int, Optional[Request], Optional[Response]], Any]):
        self.fn = fn
        self.calls = 0
        self.exhausted = False

    def stop(self):
        self.exhausted = True

    def next(
        self,
        index: int,
        last_req: Optional[Request] = None,
        last_res: Optional[Response] = None
    ) -> Optional[Request]:
        """生成下一个请求，停止时返回 None"""
        if self.exhausted:
            return None

        self.calls += 1
        try:
            feed = self.fn(index, last_req, last_res)
        except Exception as e:
            logger.error(f"❌ 迭代器出错，停止迭代 (index={index}): {e}")
            self.exhausted = True
            return None

        if feed is False or feed is None:
            logger.debug(f"⏹️  迭代器停止 (index={index})")
            self.exhausted = True
            return None

        try:
            return Request.from_feed(feed, index)
        except ConfigError as e:
            logger.error(f"❌ 迭代器返回了无效请求，停止迭代 (index={index}): {e}")
            self.exhausted = True
            return None
