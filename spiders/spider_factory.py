"""
爬虫工厂模块

提供统一的爬虫创建接口：根据 Config（任务文件或命令行参数）构建 Spider
"""
from typing import Any, Callable, Dict, List, Optional
from loguru import logger

from config import Config
from core.errors import ConfigError
from parsers import LinkParser, SelectorParser, TextParser, TitleParser
from spiders.spider import Spider


class SpiderFactory:
    """
    爬虫工厂类

    - 按名称注册内置抽取函数（title / text / links）
    - 根据配置创建 Spider（种子、运行配置、抽取函数）
    """

    _scrapers: Dict[str, Callable[..., Any]] = {
        'title': TitleParser(),
        'text': TextParser(),
        'links': LinkParser(),
    }

    @classmethod
    def register(cls, name: str, scraper: Callable[..., Any]):
        """
        注册抽取函数

        Examples:
            SpiderFactory.register('h1', lambda page: page.select_one('h1').get_text())
        """
        cls._scrapers[name] = scraper
        logger.info(f"✅ 注册抽取函数: {name}")

    @classmethod
    def get_scraper(cls, name: str) -> Callable[..., Any]:
        if name not in cls._scrapers:
            available = ", ".join(sorted(cls._scrapers))
            raise ConfigError(f"未知的抽取函数: {name}，可用: {available}")
        return cls._scrapers[name]

    @classmethod
    def available_scrapers(cls) -> List[str]:
        return sorted(cls._scrapers)

    @classmethod
    def create(
        cls,
        config: Config,
        urls: Optional[List[Any]] = None,
        selectors: Optional[Dict[str, str]] = None,
        scraper: Optional[Callable[..., Any]] = None
    ) -> Spider:
        """
        创建爬虫实例（工厂方法）

        Args:
            config: 配置对象
            urls: 种子；为空时使用 config.urls
            selectors: 字段选择器；为空时使用 config.selectors
            scraper: 自定义抽取函数（优先级最高）

        Returns:
            配置好的 Spider（尚未设置结果回调）
        """
        spider = Spider(name=config.name)
        spider.config(**config.spider.model_dump(exclude_unset=True))

        seeds = urls if urls is not None else config.urls
        spider.urls(seeds)

        selectors = selectors or config.selectors
        if scraper is not None:
            spider.scraper(scraper)
        elif selectors:
            spider.scraper(SelectorParser(selectors))
        elif config.scraper:
            spider.scraper(cls.get_scraper(config.scraper))
        else:
            spider.scraper(cls.get_scraper('title'))

        logger.info(f"🏭 创建爬虫: {spider.name} ({len(seeds)} 个种子)")
        return spider
