"""
CSS选择器解析器

字段 -> 选择器 的映射：
- "h1"            取第一个匹配的文本
- "a.next@href"   取属性（相对链接会转为绝对URL）
- "li.item[]"     取所有匹配的文本列表
- "img@src[]"     取所有匹配的属性列表
"""
from typing import Any, Dict, List, Optional, Tuple

from core.backend import Page
from parsers.base import BaseParser


def parse_selector(expr: str) -> Tuple[str, Optional[str], bool]:
    """
    解析选择器描述

    Returns:
        (css, attr, many)
    """
    many = expr.endswith("[]")
    if many:
        expr = expr[:-2]
    attr = None
    if "@" in expr:
        expr, attr = expr.rsplit("@", 1)
        attr = attr.strip() or None
    return expr.strip(), attr, many


class SelectorParser(BaseParser):
    """
    选择器解析器

    Example:
        scraper = SelectorParser({"title": "h1", "links": "a@href[]"})
        spider.scraper(scraper)
    """

    def __init__(self, selectors: Dict[str, str], parser_config=None):
        super().__init__(parser_config)
        if not selectors:
            raise ValueError("selectors 不能为空")
        self.selectors = {name: parse_selector(expr) for name, expr in selectors.items()}

    def parse(self, page: Page) -> Dict[str, Any]:
        return {name: self._extract(page, *parsed) for name, parsed in self.selectors.items()}

    def _extract(self, page: Page, css: str, attr: Optional[str], many: bool) -> Any:
        if many:
            values: List[str] = []
            for tag in page.select(css):
                value = self._value(page, tag, attr)
                if value:
                    values.append(value)
            return values

        tag = page.select_one(css)
        if tag is None:
            return None
        return self._value(page, tag, attr)

    def _value(self, page: Page, tag, attr: Optional[str]) -> Optional[str]:
        if attr is None:
            return self._clean_text(tag.get_text(" "))
        value = tag.get(attr)
        if value is None:
            return None
        if isinstance(value, list):
            value = " ".join(value)
        if attr in ("href", "src"):
            return self._absolute_url(value, page.url)
        return value
