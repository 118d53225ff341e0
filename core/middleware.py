"""
中间件管道模块

每个任务依次经过:
1. before-scraping(req, next): next(err) 丢弃任务，next() 继续
2. 执行（由调度器调用执行后端）
3. after-scraping(req, res, next): next(err) 强制失败，next(None, data) 替换响应数据

钩子可以是普通函数或 async 函数；同步抛出的异常等同于 next(异常)。
"""
import asyncio
import inspect
from typing import Any, Callable, List, Optional, Tuple
from loguru import logger

from core.errors import DiscardError, OverrideError, wrap_error
from core.job import Job


_MISSING = object()


async def call_with_next(fn: Callable[..., Any], *args) -> Tuple[Optional[BaseException], Any]:
    """
    以 next 回调方式调用钩子

    - 同步钩子：等待其调用 next（可以稍后由事件循环中的其他回调调用）
    - 异步钩子：返回时若尚未调用 next，视为 next()

    Returns:
        (错误或None, 传给 next 的值；未传值时为 _MISSING)
    """
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def next_(err: Optional[BaseException] = None, value: Any = _MISSING):
        if future.done():
            logger.warning(f"⚠️  钩子重复调用 next()，已忽略: {getattr(fn, '__name__', fn)}")
            return
        future.set_result((err, value))

    try:
        result = fn(*args, next_)
        if inspect.isawaitable(result):
            await result
            if not future.done():
                future.set_result((None, _MISSING))
    except Exception as e:
        if future.done():
            logger.warning(f"⚠️  钩子在调用 next() 之后抛出异常，已忽略: {e}")
        else:
            future.set_result((e, _MISSING))

    return await future


class MiddlewarePipeline:
    """
    中间件管道

    Example:
        pipeline = MiddlewarePipeline()
        pipeline.use_before(lambda req, next: next(ValueError("too-far") if req.index > 1 else None))
        error = await pipeline.run_before(job)
    """

    def __init__(self):
        self.before: List[Callable[..., Any]] = []
        self.after: List[Callable[..., Any]] = []

    def __len__(self) -> int:
        return len(self.before) + len(self.after)

    def use_before(self, fn: Callable[..., Any]) -> "MiddlewarePipeline":
        self.before.append(fn)
        return self

    def use_after(self, fn: Callable[..., Any]) -> "MiddlewarePipeline":
        self.after.append(fn)
        return self

    def use(self, middleware: Any) -> "MiddlewarePipeline":
        """注册中间件对象（提供 before_scraping / after_scraping 方法之一或两者）"""
        before = getattr(middleware, "before_scraping", None)
        after = getattr(middleware, "after_scraping", None)
        if before is None and after is None:
            raise TypeError(f"中间件缺少 before_scraping/after_scraping: {middleware!r}")
        if before is not None:
            self.use_before(before)
        if after is not None:
            self.use_after(after)
        return self

    async def run_before(self, job: Job) -> Optional[DiscardError]:
        """依次执行 before-scraping 阶段，返回丢弃错误或 None"""
        for stage in self.before:
            err, _ = await call_with_next(stage, job.req)
            if err is not None:
                return wrap_error(err, DiscardError)
        return None

    async def run_after(self, job: Job) -> Optional[OverrideError]:
        """依次执行 after-scraping 阶段，返回强制失败错误或 None；可替换 job.res.data"""
        for stage in self.after:
            err, value = await call_with_next(stage, job.req, job.res)
            if err is not None:
                return wrap_error(err, OverrideError)
            if value is not _MISSING and job.res is not None:
                job.res.data = value
        return None
