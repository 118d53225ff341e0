"""
CLI命令处理函数
"""
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional
from loguru import logger
from tqdm import tqdm

from config import LogConfig, config as env_config, get_job_config
from core.backend import AiohttpBackend
from core.cookie_jar import CookieJar
from core.errors import ConfigError
from spiders import SpiderFactory
from spiders.spider import RunResult, Spider


def setup_logging(log_config: LogConfig, verbose: bool = False):
    """配置日志：彩色 stderr + 轮转日志文件"""
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
        level="DEBUG" if verbose else log_config.log_level,
        colorize=True
    )

    log_file = Path(log_config.log_dir) / log_config.log_file
    log_file.parent.mkdir(parents=True, exist_ok=True)
    logger.add(
        log_file,
        rotation=log_config.rotation,
        retention=log_config.retention,
        encoding="utf-8",
        level="DEBUG"
    )


def load_urls_file(path: str) -> List[str]:
    """读取 URL 文件（每行一个，忽略空行与 # 注释）"""
    urls = []
    with open(path, 'r', encoding='utf-8') as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith('#'):
                urls.append(line)
    return urls


def parse_selector_args(items: List[str]) -> Dict[str, str]:
    """解析 --selector name=css 参数"""
    selectors = {}
    for item in items or []:
        if '=' not in item:
            raise ConfigError(f"无效的选择器参数: {item}（应为 name=css）")
        name, css = item.split('=', 1)
        selectors[name.strip()] = css.strip()
    return selectors


def spider_overrides(args) -> Dict[str, Any]:
    """命令行参数 -> 爬虫配置覆盖项"""
    overrides: Dict[str, Any] = {}
    for key in ('concurrency', 'limit', 'max_retries', 'auto_retry', 'timeout', 'jar'):
        value = getattr(args, key, None)
        if value is not None:
            overrides[key] = value
    throttle = getattr(args, 'throttle', None)
    if throttle:
        if len(throttle) > 2:
            raise ConfigError("--throttle 最多两个值: MIN [MAX]")
        overrides['throttle'] = {"min_ms": throttle[0], "max_ms": throttle[1] if len(throttle) > 1 else None}
    return overrides


def job_record(err, req, res) -> Dict[str, Any]:
    """结果回调参数 -> 输出记录"""
    return {
        "index": req.index,
        "url": req.url,
        "retries": req.retries,
        "data": res.data if res is not None else None,
        "error": err.to_dict() if err is not None else None,
    }


async def handle_crawl(args) -> Optional[RunResult]:
    """处理 crawl 子命令"""
    print(f"\n📌 命令: 运行爬虫")

    # 1. 加载配置
    if args.config:
        job_config = get_job_config(args.config)
    else:
        job_config = env_config

    # 2. 种子与抽取
    urls: List[Any] = list(args.url or [])
    if args.urls_file:
        urls.extend(load_urls_file(args.urls_file))
    selectors = parse_selector_args(args.selector)
    scraper = SpiderFactory.get_scraper(args.scraper) if args.scraper else None

    spider = SpiderFactory.create(
        job_config,
        urls=urls or None,
        selectors=selectors or None,
        scraper=scraper,
    )
    spider.config(**spider_overrides(args))

    if not spider.seeds:
        logger.error("❌ 没有种子 URL：请使用 --url / --urls-file 或在任务文件中配置 urls")
        return None

    print(f"种子: {len(spider.seeds)} 个, 并发: {spider.settings.concurrency}, limit: {spider.settings.limit}")

    # 3. 输出与进度
    output = open(args.output, 'a', encoding='utf-8') if args.output else None
    total = min(len(spider.seeds), spider.settings.limit or len(spider.seeds))
    progress = tqdm(total=total, desc=spider.name, unit="job", disable=not args.progress)

    def on_result(err, req, res):
        if output is not None:
            output.write(json.dumps(job_record(err, req, res), ensure_ascii=False, default=str) + "\n")
            output.flush()

    def on_add(job):
        progress.total += 1
        progress.refresh()

    def on_done(*_):
        progress.update(1)

    spider.result(on_result)
    spider.on("job:add", on_add)
    for event in ("job:success", "job:fail", "job:discard"):
        spider.on(event, on_done)

    # 4. 运行
    try:
        async with AiohttpBackend(job_config.backend) as backend:
            result = await spider.run(backend)
    finally:
        progress.close()
        if output is not None:
            output.close()

    print_statistics(spider)
    print_remains(result.remains)
    return result


async def handle_jar(args):
    """处理 jar 子命令"""
    jar = CookieJar(args.path)
    count = jar.load()

    if args.clear:
        jar.clear()
        jar.save()
        print(f"🧹 已清空 Cookie罐: {args.path} ({count} 个)")
        return

    if not count:
        print(f"🍪 Cookie罐为空: {args.path}")
        return

    print(f"🍪 Cookie罐: {args.path} ({count} 个)")
    for key, value in jar.snapshot().items():
        print(f"  {key} = {value}")


# ============================================================================
# 辅助函数
# ============================================================================

def print_statistics(spider: Spider):
    """输出统计信息"""
    stats = spider.stats
    print("\n" + "=" * 60)
    print("📊 运行统计:")
    print(f"  完成: {stats.done}")
    print(f"  成功: {stats.successes}")
    print(f"  失败: {stats.failures}")
    print(f"  丢弃: {stats.discards}")
    print(f"  重试: {stats.retries}")
    print(f"  完成度: {stats.completion}%")
    print(f"  用时: {stats.elapsed:.2f}s")
    if stats.error_index:
        print("  错误:")
        for message, ordinal in stats.error_index.items():
            print(f"    #{ordinal} {message} x{stats.error_counts.get(message, 0)}")
    print("=" * 60)


def print_remains(remains):
    """输出未完成任务"""
    if not remains:
        return
    print(f"⚠️  未完成任务: {len(remains)} 个")
    for job in remains[:20]:
        print(f"  #{job.index} {job.req.url} -> {job.error}")
    if len(remains) > 20:
        print(f"  ... 其余 {len(remains) - 20} 个")
