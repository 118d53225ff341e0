"""
解析器基类模块

包含抽取函数的公共基类：
- BaseParser: 解析器基类（可直接作为 scraper 使用的可调用对象）
"""
import re
from abc import ABC, abstractmethod
from typing import Any, List, Optional
from urllib.parse import urljoin, urlparse, urldefrag

from core.backend import Page


class BaseParser(ABC):
    """
    解析器基类

    所有解析器的公共基类，提供：
    - 文本清理
    - URL处理
    - 链接提取

    子类需要实现:
    - parse(): 从页面抽取数据
    """

    def __init__(self, parser_config=None):
        """
        初始化解析器

        Args:
            parser_config: 配置对象，可选
        """
        self._config = parser_config

    def __call__(self, page: Page) -> Any:
        return self.parse(page)

    @abstractmethod
    def parse(self, page: Page) -> Any:
        """从页面抽取数据"""

    def _clean_text(self, text: Optional[str]) -> str:
        """合并空白字符"""
        if not text:
            return ""
        return re.sub(r'\s+', ' ', text).strip()

    def _absolute_url(self, href: str, base_url: str) -> str:
        """相对路径转绝对URL，并去掉 #fragment"""
        url, _ = urldefrag(urljoin(base_url, href))
        return url

    def _extract_links(self, page: Page, selector: str = "a[href]", same_host: bool = False) -> List[str]:
        """
        提取页面链接

        Args:
            page: 页面
            selector: 链接选择器
            same_host: 只保留与页面同域名的链接

        Returns:
            链接列表（已去重，保持顺序）
        """
        host = urlparse(page.url).netloc
        links = []
        for tag in page.select(selector):
            href = tag.get('href')
            if not href or href.startswith(('javascript:', 'mailto:')):
                continue
            url = self._absolute_url(href, page.url)
            if not url.startswith('http'):
                continue
            if same_host and urlparse(url).netloc != host:
                continue
            if url not in links:
                links.append(url)
        return links
