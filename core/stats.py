"""
运行统计模块
"""
import time
from typing import Any, Dict, Optional


class SpiderStats:
    """
    运行统计

    - done: 处理完成的任务数（成功、失败、丢弃；退出时取消的任务不计入）
    - successes / failures: 成功数 / 失败数（丢弃不计入两者）
    - error_index: 错误消息 -> 首次出现时在失败中的序号（从1开始）
    - error_counts: 错误消息 -> 出现次数
    - completion: 完成百分比
    """

    def __init__(self):
        self.done = 0
        self.successes = 0
        self.failures = 0
        self.discards = 0
        self.retries = 0
        self.error_index: Dict[str, int] = {}
        self.error_counts: Dict[str, int] = {}
        self.completion: Optional[float] = 0.0
        self.started_at: Optional[float] = None
        self.finished_at: Optional[float] = None

    def start(self):
        self.started_at = time.time()

    def finish(self):
        self.finished_at = time.time()

    @property
    def elapsed(self) -> float:
        if self.started_at is None:
            return 0.0
        return (self.finished_at or time.time()) - self.started_at

    def record_success(self):
        self.done += 1
        self.successes += 1

    def record_failure(self, message: str):
        self.done += 1
        self.failures += 1
        if message not in self.error_index:
            self.error_index[message] = self.failures
        self.error_counts[message] = self.error_counts.get(message, 0) + 1

    def record_discard(self):
        self.done += 1
        self.discards += 1

    def record_retry(self):
        self.retries += 1

    def update_completion(
        self,
        pending: int,
        in_flight: int,
        limit: Optional[int] = None,
        iterating: bool = False
    ) -> Optional[float]:
        """
        重新计算完成度

        迭代器仍在产生任务时总数未知：有 limit 以 limit 为总数，否则按已知任务估算。
        """
        if iterating and limit:
            total = limit
        else:
            total = self.done + pending + in_flight

        self.completion = round(self.done * 100 / total, 2) if total else 0.0
        return self.completion

    def to_dict(self) -> Dict[str, Any]:
        return {
            "done": self.done,
            "successes": self.successes,
            "failures": self.failures,
            "discards": self.discards,
            "retries": self.retries,
            "completion": self.completion,
            "error_index": dict(self.error_index),
            "error_counts": dict(self.error_counts),
            "elapsed": round(self.elapsed, 3),
        }
