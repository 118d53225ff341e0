"""
解析器模块

包含可直接作为抽取函数（scraper）使用的解析器：
- BaseParser: 解析器基类
- SelectorParser: CSS选择器解析器
- TitleParser / TextParser / LinkParser: 内置页面解析器
"""
from parsers.base import BaseParser
from parsers.selector_parser import SelectorParser, parse_selector
from parsers.page_parsers import TitleParser, TextParser, LinkParser

__all__ = [
    'BaseParser',
    'SelectorParser',
    'parse_selector',
    'TitleParser',
    'TextParser',
    'LinkParser',
]
