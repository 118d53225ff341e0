"""
执行后端模块

调度器把"抓取 + 抽取"视为不透明的异步操作：
- ExecutionBackend: 后端抽象基类，execute() 返回 Response 或抛出 BackendError
- Page: 交给抽取函数的页面对象（HTML + BeautifulSoup 查询）
- AiohttpBackend: 基于 aiohttp 的默认实现
"""
import asyncio
import inspect
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional
import aiohttp
from bs4 import BeautifulSoup
from fake_useragent import UserAgent
from loguru import logger

from config import BackendConfig
from core.errors import BackendError, JobTimeout
from core.job import Request, Response


class Page:
    """
    页面对象

    抽取函数的唯一参数，例如:
        def scraper(page):
            return {"title": page.select_one("title").get_text(strip=True)}
    """

    def __init__(
        self,
        url: str,
        html: str,
        status: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
        cookies: Optional[Dict[str, str]] = None
    ):
        self.url = url
        self.html = html
        self.status = status
        self.headers = headers or {}
        self.cookies = cookies or {}
        self._soup: Optional[BeautifulSoup] = None

    @property
    def soup(self) -> BeautifulSoup:
        if self._soup is None:
            self._soup = BeautifulSoup(self.html or "", "lxml")
        return self._soup

    def select(self, selector: str) -> List[Any]:
        return self.soup.select(selector)

    def select_one(self, selector: str) -> Any:
        return self.soup.select_one(selector)

    def text(self) -> str:
        return self.soup.get_text(" ", strip=True)


async def run_scraper(scraper: Optional[Callable[[Page], Any]], page: Page) -> Any:
    """运行抽取函数（同步或异步），异常转为 BackendError"""
    if scraper is None:
        return None
    try:
        data = scraper(page)
        if inspect.isawaitable(data):
            data = await data
        return data
    except BackendError:
        raise
    except Exception as e:
        raise BackendError(str(e) or type(e).__name__, cause=e)


class ExecutionBackend(ABC):
    """
    执行后端基类

    子类需要实现:
    - execute(): 加载页面并运行抽取函数
    """

    name = "backend"

    async def __aenter__(self):
        """异步上下文管理器入口"""
        await self.init()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """异步上下文管理器出口"""
        await self.close()

    async def init(self):
        """初始化后端资源"""

    async def close(self):
        """释放后端资源"""

    @abstractmethod
    async def execute(
        self,
        request: Request,
        scraper: Optional[Callable[[Page], Any]],
        timeout: Optional[float] = None
    ) -> Response:
        """
        执行请求

        Raises:
            BackendError: 导航失败 / 非2xx状态 / 抽取函数异常
            JobTimeout: 超时
        """


class AiohttpBackend(ExecutionBackend):
    """基于 aiohttp 的执行后端"""

    name = "aiohttp"

    def __init__(self, backend_config: Optional[BackendConfig] = None):
        self.config = backend_config or BackendConfig()
        self.session: Optional[aiohttp.ClientSession] = None
        self.ua = UserAgent()
        self.stats = {
            'pages_fetched': 0,
            'requests_failed': 0,
        }

    async def init(self):
        """初始化HTTP会话"""
        if self.session is not None:
            return
        timeout = aiohttp.ClientTimeout(total=self.config.request_timeout)
        # cookies 由调度器的 Cookie罐管理，会话本身不保留
        connector = None if self.config.verify_ssl else aiohttp.TCPConnector(ssl=False)
        self.session = aiohttp.ClientSession(
            timeout=timeout,
            cookie_jar=aiohttp.DummyCookieJar(),
            connector=connector,
        )
        logger.info("⚙️  aiohttp 执行后端已初始化")

    async def close(self):
        """关闭会话"""
        if self.session:
            await self.session.close()
            self.session = None
            logger.info(f"🔒 执行后端已关闭: {self.stats}")

    def get_headers(self, request: Request) -> Dict[str, str]:
        """获取请求头（UA < 后端配置 < 请求自身）"""
        headers = {
            "User-Agent": self.ua.random if self.config.rotate_user_agent else self.ua.chrome,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "zh-CN,zh;q=0.9,en;q=0.8",
        }
        headers.update(self.config.headers)
        headers.update(request.headers)
        return headers

    async def execute(
        self,
        request: Request,
        scraper: Optional[Callable[[Page], Any]],
        timeout: Optional[float] = None
    ) -> Response:
        if self.session is None:
            await self.init()

        kwargs: Dict[str, Any] = dict(request.options)
        if timeout:
            kwargs["timeout"] = aiohttp.ClientTimeout(total=timeout)

        try:
            logger.debug(f"📄 获取页面: {request.url}")
            async with self.session.request(
                request.method,
                request.url,
                headers=self.get_headers(request),
                cookies=request.cookies or None,
                **kwargs
            ) as response:
                html = await response.text(errors="replace")
                status = response.status
                headers = {k: v for k, v in response.headers.items()}
                cookies = {key: morsel.value for key, morsel in response.cookies.items()}
                final_url = str(response.url)
        except asyncio.TimeoutError as e:
            self.stats['requests_failed'] += 1
            raise JobTimeout(cause=e)
        except aiohttp.ClientError as e:
            self.stats['requests_failed'] += 1
            logger.warning(f"⚠️  导航失败 {request.url}: {e}")
            raise BackendError("navigation-failed", cause=e)

        if not 200 <= status < 300:
            self.stats['requests_failed'] += 1
            raise BackendError(f"status-{status}")

        self.stats['pages_fetched'] += 1
        page = Page(final_url, html, status=status, headers=headers, cookies=cookies)
        data = await run_scraper(scraper, page)
        return Response(url=final_url, status=status, data=data, headers=headers, cookies=cookies)
