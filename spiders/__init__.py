"""
爬虫模块

- Spider: 任务爬虫（构建器 + 调度器）
- RunResult: 运行结果
- SpiderFactory: 爬虫工厂
- spawn / run: 运行辅助函数
"""
from spiders.spider import Spider, RunResult
from spiders.spider_factory import SpiderFactory
from spiders.runner import spawn, run

__all__ = [
    'Spider',
    'RunResult',
    'SpiderFactory',
    'spawn',
    'run',
]
