"""
任务数据模型

- Request: 请求（URL、cookies、headers、index、retries）
- Response: 响应（抽取的数据 + 后端报告的元信息）
- Job: 一个请求的完整生命周期（状态、错误、重试记录）
"""
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union

from config import normalize_cookies
from core.errors import JobError, ConfigError


class JobStatus(str, Enum):
    """任务状态"""
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    DISCARDED = "discarded"
    RETRYING = "retrying"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCEEDED, JobStatus.FAILED, JobStatus.DISCARDED, JobStatus.CANCELLED)


RETRY_LATER = "later"
RETRY_NOW = "now"


@dataclass
class Request:
    """
    请求

    结果回调中可调用 retry()/retry_later()/retry_now() 请求重试，
    由调度器在完成处理阶段决定是否接受（受 max_retries 约束）。
    """
    url: str
    index: int = 0
    retries: int = 0
    cookies: Dict[str, str] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    method: str = "GET"
    data: Any = None
    options: Dict[str, Any] = field(default_factory=dict)
    _retry: Optional[str] = field(default=None, init=False, repr=False, compare=False)

    @classmethod
    def from_feed(cls, feed: Union[str, Dict[str, Any], "Request"], index: int = 0) -> "Request":
        """
        从 URL 字符串或字典创建请求

        Args:
            feed: "http://..." 或 {"url": ..., "cookies": ..., "headers": ..., ...}
            index: 创建顺序（从0开始）
        """
        if isinstance(feed, Request):
            feed.index = index
            return feed

        if isinstance(feed, str):
            return cls(url=feed, index=index)

        if isinstance(feed, dict):
            if not feed.get("url"):
                raise ConfigError(f"请求缺少 url: {feed!r}")
            return cls(
                url=feed["url"],
                index=index,
                cookies=normalize_cookies(feed.get("cookies")),
                headers=dict(feed.get("headers") or {}),
                method=str(feed.get("method", "GET")).upper(),
                data=feed.get("data"),
                options=dict(feed.get("options") or {}),
            )

        raise ConfigError(f"无法识别的请求: {feed!r}")

    def retry(self, when: str = RETRY_LATER):
        """请求重试（默认放回队尾）"""
        if when not in (RETRY_LATER, RETRY_NOW):
            raise ValueError(f"未知的重试方式: {when}")
        self._retry = when

    def retry_later(self):
        self.retry(RETRY_LATER)

    def retry_now(self):
        self.retry(RETRY_NOW)

    def pop_retry(self) -> Optional[str]:
        when, self._retry = self._retry, None
        return when


@dataclass
class Response:
    """响应"""
    url: str = ""
    status: Optional[int] = None
    data: Any = None
    headers: Dict[str, str] = field(default_factory=dict)
    cookies: Dict[str, str] = field(default_factory=dict)


@dataclass
class Job:
    """任务"""
    req: Request
    res: Optional[Response] = None
    error: Optional[JobError] = None
    status: JobStatus = JobStatus.PENDING
    attempts: int = 0
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def index(self) -> int:
        return self.req.index

    def reset_attempt(self):
        """重新派发前清除上一次的结果"""
        self.res = None
        self.error = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "index": self.req.index,
            "url": self.req.url,
            "retries": self.req.retries,
            "status": self.status.value,
            "data": self.res.data if self.res else None,
            "error": self.error.to_dict() if self.error else None,
        }
