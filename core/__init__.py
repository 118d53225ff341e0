"""
核心模块

包含调度器使用的基础组件：
- job: 任务数据模型（Request / Response / Job / JobStatus）
- errors: 错误类型
- events: 同步事件通道
- throttle: 派发节流
- cookie_jar: Cookie罐（可持久化）
- middleware: 中间件管道
- iterator: 迭代器来源
- stats: 运行统计
- backend: 执行后端（ExecutionBackend / AiohttpBackend / Page）
"""
from .errors import (
    SpiderError,
    ConfigError,
    JobError,
    BackendError,
    JobTimeout,
    DiscardError,
    OverrideError,
    SpiderExit,
    Exited,
)
from .job import Job, JobStatus, Request, Response
from .events import EventEmitter
from .throttle import Throttle
from .cookie_jar import CookieJar
from .middleware import MiddlewarePipeline, call_with_next
from .iterator import IteratorSource
from .stats import SpiderStats
from .backend import ExecutionBackend, AiohttpBackend, Page

__all__ = [
    'SpiderError',
    'ConfigError',
    'JobError',
    'BackendError',
    'JobTimeout',
    'DiscardError',
    'OverrideError',
    'SpiderExit',
    'Exited',
    'Job',
    'JobStatus',
    'Request',
    'Response',
    'EventEmitter',
    'Throttle',
    'CookieJar',
    'MiddlewarePipeline',
    'call_with_next',
    'IteratorSource',
    'SpiderStats',
    'ExecutionBackend',
    'AiohttpBackend',
    'Page',
]
