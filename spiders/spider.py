"""
任务爬虫（调度器）

把一组种子请求（或一个迭代器函数）变成受控的并发执行流：
- 并发上限、总数上限（limit）、派发节流
- 中间件管道（before-scraping / 执行 / after-scraping）
- 重试（立即 / 放回队尾 / 自动）
- 暂停 / 恢复 / 退出、运行中追加任务
- 统计与事件，结束时返回未完成任务（remains）

Example:
    spider = (
        Spider()
        .urls(["https://example.com/a", "https://example.com/b"])
        .config(concurrency=2, max_retries=2, auto_retry=True)
        .scraper(lambda page: page.select_one("title").get_text())
        .result(lambda err, req, res: print(req.url, err or res.data))
    )
    async with AiohttpBackend() as backend:
        error, remains, stats = await spider.run(backend)
"""
import asyncio
import dataclasses
import inspect
import uuid
from collections import deque
from typing import Any, Callable, Deque, Dict, List, NamedTuple, Optional, Set
from loguru import logger
from pydantic import ValidationError

from config import SpiderConfig
from core.backend import ExecutionBackend
from core.cookie_jar import CookieJar
from core.errors import (
    BackendError, ConfigError, Exited, JobError, JobTimeout, SpiderExit, wrap_error,
)
from core.events import EventEmitter
from core.iterator import IteratorSource
from core.job import Job, JobStatus, Request, RETRY_LATER, RETRY_NOW
from core.middleware import MiddlewarePipeline
from core.stats import SpiderStats
from core.throttle import Throttle


class RunResult(NamedTuple):
    """运行结果"""
    error: Optional[Exited]
    remains: List[Job]
    stats: SpiderStats


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class Spider:
    """
    任务爬虫

    配置阶段使用链式方法构建（运行开始后冻结）；运行中可在回调里调用
    pause() / resume() / exit() / add_url() 以及 req.retry*()。
    """

    def __init__(self, name: Optional[str] = None):
        self.name = name or f"spider-{uuid.uuid4().hex[:8]}"

        # 配置
        self._options: Dict[str, Any] = {}
        self.settings = SpiderConfig()
        self._seeds: List[Any] = []
        self._iterator: Optional[IteratorSource] = None
        self._scraper: Optional[Callable[..., Any]] = None
        self._result: Optional[Callable[..., Any]] = None
        self.pipeline = MiddlewarePipeline()
        self.events = EventEmitter()

        # 运行状态
        self.stats = SpiderStats()
        self.jar: Optional[CookieJar] = None
        self.remains: List[Job] = []
        self.index = 0
        self._pending: Deque[Job] = deque()
        self._in_flight: Set[asyncio.Task] = set()
        self._throttle = Throttle()
        self._dispatched = 0
        self._jar_updates = 0
        self._started = False
        self._running = False
        self._paused = False
        self._exited = False
        self._wakeup: Optional[asyncio.Event] = None
        self._resumed: Optional[asyncio.Event] = None
        self._lock: Optional[asyncio.Lock] = None

    # ========================================================================
    # 配置（构建器）
    # ========================================================================

    def _ensure_configurable(self):
        if self._started:
            raise ConfigError(f"爬虫 {self.name} 已开始运行，配置已冻结")

    def config(self, **options) -> "Spider":
        """
        设置运行配置

        可用选项: concurrency, limit, max_retries, auto_retry, timeout,
        jar, cookies, throttle, jar_flush_every
        """
        self._ensure_configurable()
        merged = {**self._options, **options}
        try:
            self.settings = SpiderConfig(**merged)
        except ValidationError as e:
            raise ConfigError(f"无效的爬虫配置: {e}") from e
        self._options = merged
        return self

    def limit(self, n: int) -> "Spider":
        return self.config(limit=n)

    def throttle(self, min_ms: float, max_ms: Optional[float] = None) -> "Spider":
        return self.config(throttle={"min_ms": min_ms, "max_ms": max_ms})

    def url(self, feed: Any) -> "Spider":
        """添加一个种子（URL字符串或请求字典）；传入列表时等同 urls()"""
        if isinstance(feed, (list, tuple)):
            return self.urls(feed)
        self._ensure_configurable()
        Request.from_feed(feed)
        self._seeds.append(feed)
        return self

    def urls(self, feeds: List[Any]) -> "Spider":
        for feed in feeds:
            self.url(feed)
        return self

    def iterate(self, fn: Callable[[int, Optional[Request], Any], Any]) -> "Spider":
        """设置迭代器函数 fn(index, last_req, last_res) -> URL | dict | False"""
        self._ensure_configurable()
        self._iterator = IteratorSource(fn)
        return self

    def scraper(self, fn: Callable[..., Any]) -> "Spider":
        """设置抽取函数 fn(page) -> data"""
        self._ensure_configurable()
        self._scraper = fn
        return self

    def before_scraping(self, fn: Callable[..., Any]) -> "Spider":
        self._ensure_configurable()
        self.pipeline.use_before(fn)
        return self

    def after_scraping(self, fn: Callable[..., Any]) -> "Spider":
        self._ensure_configurable()
        self.pipeline.use_after(fn)
        return self

    def use(self, middleware: Any) -> "Spider":
        self._ensure_configurable()
        self.pipeline.use(middleware)
        return self

    def result(self, fn: Callable[..., Any]) -> "Spider":
        """设置结果回调 fn(err, req, res)"""
        self._ensure_configurable()
        self._result = fn
        return self

    def on(self, event: str, handler: Callable[..., Any]) -> "Spider":
        self.events.on(event, handler)
        return self

    def once(self, event: str, handler: Callable[..., Any]) -> "Spider":
        self.events.once(event, handler)
        return self

    def off(self, event: str, handler: Callable[..., Any]) -> "Spider":
        self.events.off(event, handler)
        return self

    # ========================================================================
    # 运行时控制
    # ========================================================================

    @property
    def seeds(self) -> List[Any]:
        return list(self._seeds)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_paused(self) -> bool:
        return self._paused

    @property
    def exited(self) -> bool:
        return self._exited

    def pause(self):
        """暂停派发（正在执行的任务继续完成）"""
        if not self._running or self._paused or self._exited:
            return
        self._paused = True
        self._resumed.clear()
        logger.info(f"⏸️  爬虫暂停: {self.name}")
        self.events.emit("spider:pause")

    def resume(self):
        """恢复派发"""
        if not self._paused:
            return
        self._paused = False
        self._resumed.set()
        logger.info(f"▶️  爬虫恢复: {self.name}")
        self.events.emit("spider:resume")
        self._wake()

    def exit(self):
        """退出：停止派发，等待执行中的任务结束，队列中的任务进入 remains"""
        if not self._running or self._exited:
            return
        self._exited = True
        self._paused = False
        self._resumed.set()
        logger.warning(f"⛔ 爬虫退出: {self.name} (队列中 {len(self._pending)} 个, 执行中 {len(self._in_flight)} 个)")
        self.events.emit("spider:exit")
        self._wake()

    def add_url(self, feed: Any) -> Optional[Job]:
        """
        运行中追加任务（受 limit 约束）

        Returns:
            新任务；超过 limit 或已退出时返回 None
        """
        if not self._started:
            self.url(feed)
            return None
        if self._exited or not self._running:
            logger.warning(f"⚠️  爬虫已退出，忽略追加: {feed}")
            return None
        if not self._can_create():
            logger.debug(f"   已达到 limit={self.settings.limit}，忽略追加: {feed}")
            return None

        job = self._create_job(Request.from_feed(feed, self.index))
        self._enqueue(job)
        self.events.emit("job:add", job)
        return job

    def retry(self, req: Request, when: str = RETRY_LATER):
        """等同 req.retry(when)，在结果回调中调用"""
        req.retry(when)

    # ========================================================================
    # 运行
    # ========================================================================

    async def run(
        self,
        backend: ExecutionBackend,
        on_complete: Optional[Callable[[Optional[Exited], List[Job]], Any]] = None
    ) -> RunResult:
        """
        运行爬虫直到队列、执行中任务和迭代器全部耗尽（或被退出）

        Args:
            backend: 执行后端
            on_complete: 完成回调 fn(err, remains)，err 为 None 或 Exited

        Returns:
            RunResult(error, remains, stats)
        """
        self._ensure_configurable()
        self._started = True
        self._running = True
        self._wakeup = asyncio.Event()
        self._resumed = asyncio.Event()
        self._resumed.set()
        self._lock = asyncio.Lock()
        self._throttle = Throttle.from_config(self.settings.throttle)
        self._setup_jar()
        self.stats.start()

        logger.info(
            f"🚀 开始运行爬虫 {self.name}: 种子={len(self._seeds)}, "
            f"迭代器={'是' if self._iterator else '否'}, 并发={self.settings.concurrency}, "
            f"limit={self.settings.limit}"
        )
        self.events.emit("spider:start")

        for feed in self._seeds:
            if not self._can_create():
                logger.debug(f"   已达到 limit={self.settings.limit}，其余种子不再派发")
                break
            self._enqueue(self._create_job(Request.from_feed(feed, self.index)))

        if not self._pending:
            self._advance_iterator(None)

        try:
            await self._loop(backend)
        finally:
            self._running = False

        error = self._finalize()
        status = "exited" if error else "success"
        self.events.emit("spider:end", status, list(self.remains))

        if on_complete is not None:
            await _maybe_await(on_complete(error, list(self.remains)))

        return RunResult(error, list(self.remains), self.stats)

    async def _loop(self, backend: ExecutionBackend):
        """调度主循环：填满并发槽位，等待任务完成或状态变化"""
        while True:
            self._wakeup.clear()
            if not self._exited and not self._paused:
                self._fill_slots(backend)

            if not self._in_flight and (self._exited or not self._pending):
                break

            await self._wakeup.wait()

    def _fill_slots(self, backend: ExecutionBackend):
        while len(self._in_flight) < self.settings.concurrency and self._pending:
            job = self._pending.popleft()
            self._in_flight.add(asyncio.create_task(self._work(job, backend)))

    async def _work(self, job: Job, backend: ExecutionBackend):
        """单个并发槽位：执行任务，立即重试时留在同一槽位"""
        try:
            while await self._attempt(job, backend):
                pass
        except Exception as e:
            logger.exception(f"❌ 任务处理出错: {job.req.url}")
            job.error = wrap_error(e)
            job.status = JobStatus.FAILED
            self.remains.append(job)
        finally:
            self._in_flight.discard(asyncio.current_task())
            self._wake()

    async def _attempt(self, job: Job, backend: ExecutionBackend) -> bool:
        """
        执行一次任务

        Returns:
            是否需要在当前槽位立即重试
        """
        if self._paused:
            # 立即重试同样受暂停约束
            await self._resumed.wait()

        if self._dispatched and self._throttle.enabled:
            await self._throttle.wait()
        self._dispatched += 1

        if self._exited:
            self._cancel(job)
            return False

        job.reset_attempt()
        job.status = JobStatus.RUNNING
        job.attempts += 1
        logger.debug(f"   ➡️  派发任务 #{job.index}: {job.req.url} (重试 {job.req.retries})")
        self.events.emit("job:start", job)

        discard = await self.pipeline.run_before(job)
        if discard is not None:
            await self._discard(job, discard)
            return False

        await self._execute(job, backend)

        if job.error is None:
            override = await self.pipeline.run_after(job)
            if override is not None:
                job.error = override

        return await self._complete(job)

    async def _execute(self, job: Job, backend: ExecutionBackend):
        """调用执行后端（带超时），错误写入 job.error"""
        timeout = self.settings.timeout
        outgoing = dataclasses.replace(job.req, cookies=self._request_cookies(job.req))
        try:
            call = backend.execute(outgoing, self._scraper, timeout)
            if timeout:
                job.res = await asyncio.wait_for(call, timeout)
            else:
                job.res = await call
        except asyncio.TimeoutError as e:
            job.error = JobTimeout(cause=e)
        except JobError as e:
            job.error = e
        except Exception as e:
            job.error = BackendError(str(e) or type(e).__name__, cause=e)

    async def _discard(self, job: Job, error: JobError):
        async with self._lock:
            if self._exited:
                self._cancel(job)
                return
            job.status = JobStatus.DISCARDED
            job.error = error
            self.stats.record_discard()
            logger.debug(f"   🗑️  丢弃任务 #{job.index}: {error}")
            self.events.emit("job:discard", error, job)
            self._advance_iterator(job)
            self._update_completion()

    async def _complete(self, job: Job) -> bool:
        """
        完成处理（串行）：Cookie罐、结果回调、重试决策、统计、迭代器

        Returns:
            是否需要在当前槽位立即重试
        """
        async with self._lock:
            if self._exited:
                self._cancel(job)
                return False

            if self.jar is not None and job.res is not None and job.res.cookies:
                self._update_jar(job.res.cookies)

            failed = job.error is not None
            job.status = JobStatus.FAILED if failed else JobStatus.SUCCEEDED

            await self._call_result(job)

            when = job.req.pop_retry()
            if when is None and failed and self.settings.auto_retry \
                    and job.req.retries < self.settings.max_retries:
                when = RETRY_LATER

            if when is not None and not self._exited and self._accept_retry(job, when):
                return when == RETRY_NOW

            if failed:
                self.stats.record_failure(job.error.message)
                self.remains.append(job)
                logger.warning(f"   ❌ 任务失败 #{job.index}: {job.req.url} ({job.error.kind}: {job.error})")
                self.events.emit("job:fail", job.error, job)
            else:
                self.stats.record_success()
                logger.debug(f"   ✓ 任务成功 #{job.index}: {job.req.url}")
                self.events.emit("job:success", job)

            self._advance_iterator(job)
            self._update_completion()
            return False

    async def _call_result(self, job: Job):
        if self._result is None:
            return
        try:
            await _maybe_await(self._result(job.error, job.req, job.res))
        except Exception:
            logger.exception(f"❌ 结果回调出错: {job.req.url}")

    def _accept_retry(self, job: Job, when: str) -> bool:
        max_retries = self.settings.max_retries
        if max_retries and job.req.retries >= max_retries:
            logger.debug(f"   已达到最大重试次数 {max_retries}: {job.req.url}")
            return False

        job.req.retries += 1
        job.status = JobStatus.RETRYING
        self.stats.record_retry()
        logger.debug(f"   🔄 重试任务 #{job.index} ({when}): {job.req.url} 第 {job.req.retries} 次")
        self.events.emit("job:retry", job, when)

        if when == RETRY_LATER:
            self._enqueue(job)
        return True

    # ========================================================================
    # 内部工具
    # ========================================================================

    def _wake(self):
        if self._wakeup is not None:
            self._wakeup.set()

    def _can_create(self) -> bool:
        limit = self.settings.limit
        return limit is None or self.index < limit

    def _create_job(self, req: Request) -> Job:
        req.index = self.index
        self.index += 1
        return Job(req=req)

    def _enqueue(self, job: Job):
        self._pending.append(job)
        self._wake()

    def _cancel(self, job: Job):
        job.status = JobStatus.CANCELLED
        job.error = SpiderExit()
        self.remains.append(job)

    def _advance_iterator(self, job: Optional[Job]):
        """终态任务后拉取迭代器的下一个请求"""
        if self._iterator is None or self._iterator.exhausted or self._exited:
            return
        if not self._can_create():
            self._iterator.stop()
            return

        req = self._iterator.next(
            self.index,
            job.req if job else None,
            job.res if job else None,
        )
        if req is not None:
            self._enqueue(self._create_job(req))

    def _update_completion(self):
        iterating = self._iterator is not None and not self._iterator.exhausted
        in_flight = max(len(self._in_flight) - 1, 0)
        self.stats.update_completion(len(self._pending), in_flight, self.settings.limit, iterating)

    def _request_cookies(self, req: Request) -> Dict[str, str]:
        """请求 cookies：罐快照 < 运行配置 < 请求自身"""
        if self.jar is not None:
            return self.jar.merge_for_request(self.settings.cookies, req.cookies)
        return {**self.settings.cookies, **req.cookies}

    def _setup_jar(self):
        if not self.settings.jar_enabled:
            self.jar = None
            return
        self.jar = CookieJar(self.settings.jar_path)
        self.jar.load()

    def _update_jar(self, cookies: Dict[str, str]):
        if not self.jar.update(cookies):
            return
        self._jar_updates += 1
        if self.jar.path and self._jar_updates % self.settings.jar_flush_every == 0:
            self._save_jar()

    def _save_jar(self):
        """写回Cookie罐；写入失败只记录日志，罐保持 dirty 等待下次写回"""
        try:
            self.jar.save()
        except OSError:
            logger.exception(f"❌ Cookie罐写回失败: {self.jar.path}")

    def _finalize(self) -> Optional[Exited]:
        """结束运行：统计完成度、取消队列中的任务、写回Cookie罐"""
        self.stats.update_completion(len(self._pending), 0, None, False)

        while self._pending:
            self._cancel(self._pending.popleft())

        if self.jar is not None and self.jar.path and self.jar.dirty:
            self._save_jar()

        self.stats.finish()
        error = Exited() if self._exited else None
        logger.info(
            f"🏁 爬虫结束 {self.name}: 状态={'exited' if error else 'success'}, "
            f"完成={self.stats.done}, 成功={self.stats.successes}, 失败={self.stats.failures}, "
            f"丢弃={self.stats.discards}, 剩余={len(self.remains)}, 用时={self.stats.elapsed:.2f}s"
        )
        return error
