"""
错误类型模块

- SpiderError: 所有错误的基类
- JobError: 单个任务的错误（带 kind），只影响该任务，不会中止运行
- Exited: 调用 exit() 后整个运行的完成错误
"""
from typing import Optional


class SpiderError(Exception):
    """爬虫错误基类"""

    kind = "spider"

    @property
    def message(self) -> str:
        return str(self)


class ConfigError(SpiderError):
    """配置错误（运行开始后修改配置、无效参数等）"""

    kind = "config"


class JobError(SpiderError):
    """任务级错误基类"""

    kind = "job"

    def __init__(self, message: str = "", cause: Optional[BaseException] = None):
        super().__init__(message or self.kind)
        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


class BackendError(JobError):
    """执行后端错误（导航失败、HTTP状态、抽取函数异常），消息原样保留，如 status-404"""

    kind = "backend"


class JobTimeout(JobError):
    """请求超时"""

    kind = "timeout"

    def __init__(self, message: str = "timeout", cause: Optional[BaseException] = None):
        super().__init__(message, cause)


class DiscardError(JobError):
    """before-scraping 钩子丢弃任务"""

    kind = "discard"


class OverrideError(JobError):
    """after-scraping 钩子强制任务失败"""

    kind = "override"


class SpiderExit(JobError):
    """运行被 exit() 中止时未完成的任务"""

    kind = "spider-exit"

    def __init__(self, message: str = "spider-exit", cause: Optional[BaseException] = None):
        super().__init__(message, cause)


class Exited(SpiderError):
    """调用 exit() 后运行的完成错误"""

    kind = "exited"

    def __init__(self, message: str = "exited"):
        super().__init__(message)


def wrap_error(error: BaseException, error_class=JobError) -> JobError:
    """将任意异常包装为指定的 JobError 子类（已是该类型时原样返回）"""
    if isinstance(error, error_class):
        return error
    return error_class(str(error) or type(error).__name__, cause=error)
