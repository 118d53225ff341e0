"""
任务爬虫 - 命令行入口

子命令:
- crawl: 运行爬虫（种子 URL / 任务文件，并发、重试、节流、Cookie罐）
- jar:   查看或清空持久化 Cookie罐
"""
import asyncio
import sys
from loguru import logger

from config import config
from cli import create_parser, handle_crawl, handle_jar, setup_logging
from core.errors import ConfigError


async def main(argv=None):
    """主函数 - 子命令模式"""
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(config.log, verbose=getattr(args, 'verbose', False))

    print("\n" + "=" * 60)
    print("🕷️  任务爬虫")
    print("=" * 60)

    try:
        if args.command == 'crawl':
            result = await handle_crawl(args)
            if result is None or result.error is not None:
                return 1
        elif args.command == 'jar':
            await handle_jar(args)
    except (ConfigError, ValueError, FileNotFoundError) as e:
        logger.error(f"❌ {e}")
        return 2
    return 0


def run_cli():
    """命令行脚本入口"""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run_cli()
