"""
运行辅助函数

- spawn(): 创建并初始化一个执行后端
- run(): 使用给定后端运行爬虫；未提供时临时创建一个，结束后关闭
"""
from typing import Any, Callable, Optional
from loguru import logger

from config import BackendConfig
from core.backend import AiohttpBackend, ExecutionBackend
from spiders.spider import RunResult, Spider


async def spawn(backend_config: Optional[BackendConfig] = None) -> AiohttpBackend:
    """创建并初始化 aiohttp 执行后端（调用方负责 close）"""
    backend = AiohttpBackend(backend_config)
    await backend.init()
    return backend


async def run(
    spider: Spider,
    on_complete: Optional[Callable[..., Any]] = None,
    backend: Optional[ExecutionBackend] = None,
    backend_config: Optional[BackendConfig] = None
) -> RunResult:
    """
    运行爬虫

    Args:
        spider: 爬虫
        on_complete: 完成回调 fn(err, remains)
        backend: 执行后端；为空时临时创建
        backend_config: 临时后端的配置
    """
    if backend is not None:
        return await spider.run(backend, on_complete)

    logger.debug(f"⚙️  为 {spider.name} 创建临时执行后端")
    async with AiohttpBackend(backend_config) as temporary:
        return await spider.run(temporary, on_complete)
