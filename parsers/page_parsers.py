"""
内置页面解析器（供工厂按名称注册）
"""
from typing import Any, Dict, List

from core.backend import Page
from parsers.base import BaseParser


class TitleParser(BaseParser):
    """页面标题"""

    def parse(self, page: Page) -> Dict[str, Any]:
        tag = page.select_one("title")
        return {"title": self._clean_text(tag.get_text()) if tag else ""}


class TextParser(BaseParser):
    """页面全文"""

    def parse(self, page: Page) -> Dict[str, Any]:
        return {"text": self._clean_text(page.text())}


class LinkParser(BaseParser):
    """页面链接（可只保留同域名）"""

    def __init__(self, same_host: bool = False, parser_config=None):
        super().__init__(parser_config)
        self.same_host = same_host

    def parse(self, page: Page) -> Dict[str, List[str]]:
        return {"links": self._extract_links(page, same_host=self.same_host)}
