"""
CLI命令定义（argparse）
"""
import argparse


def create_parser() -> argparse.ArgumentParser:
    """
    创建命令行参数解析器

    Returns:
        ArgumentParser 实例
    """
    parser = argparse.ArgumentParser(
        prog='spider.py',
        description='任务爬虫：并发、重试、节流、Cookie罐',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
示例:
  # 爬取若干 URL，抽取标题
  python spider.py crawl --url https://example.com/a --url https://example.com/b

  # 使用 configs/ 下的任务文件，覆盖并发与重试
  python spider.py crawl --config example --concurrency 4 --max-retries 2 --auto-retry

  # 从文件读取 URL，按选择器抽取并写入 JSON lines
  python spider.py crawl --urls-file urls.txt --selector title=h1 --selector links=a@href[] --output out.jsonl

  # 随机节流 200~500ms，使用持久化 Cookie罐
  python spider.py crawl --url https://example.com --throttle 200 500 --jar .cookies/example.json

  # 查看 / 清空 Cookie罐
  python spider.py jar --path .cookies/example.json
  python spider.py jar --path .cookies/example.json --clear
        '''
    )

    # 创建子命令
    subparsers = parser.add_subparsers(dest='command', help='子命令', required=True)

    # ============================================================================
    # 子命令: crawl - 运行爬虫
    # ============================================================================
    parser_crawl = subparsers.add_parser('crawl', help='运行爬虫：--url/--urls-file 指定种子，或 --config 使用任务文件')
    parser_crawl.add_argument('--config', type=str,
                              help='任务配置名 (configs/ 下，如 example) 或 JSON 文件路径')
    parser_crawl.add_argument('--url', type=str, action='append', default=[],
                              help='种子 URL（可重复）')
    parser_crawl.add_argument('--urls-file', type=str,
                              help='种子 URL 文件（每行一个，# 开头为注释）')
    parser_crawl.add_argument('--selector', type=str, action='append', default=[],
                              help='字段选择器 name=css（可重复；css@attr 取属性，末尾 [] 取列表）')
    parser_crawl.add_argument('--scraper', type=str, default=None,
                              help='内置抽取函数 (title / text / links)')
    parser_crawl.add_argument('--concurrency', type=int, default=None, help='并发数')
    parser_crawl.add_argument('--limit', type=int, default=None, help='最多任务数')
    parser_crawl.add_argument('--max-retries', type=int, default=None, help='最大重试次数')
    parser_crawl.add_argument('--auto-retry', action='store_true', default=None, help='失败自动重试')
    parser_crawl.add_argument('--timeout', type=float, default=None, help='单个请求超时（秒）')
    parser_crawl.add_argument('--throttle', type=float, nargs='+', metavar='MS', default=None,
                              help='派发节流（毫秒）：固定值，或 MIN MAX 随机区间')
    parser_crawl.add_argument('--jar', type=str, default=None,
                              help='持久化 Cookie罐文件路径')
    parser_crawl.add_argument('--output', type=str, default=None,
                              help='结果输出文件（JSON lines）')
    parser_crawl.add_argument('--no-progress', dest='progress', action='store_false',
                              help='不显示进度条')
    parser_crawl.add_argument('--verbose', action='store_true', help='输出调试日志')

    # ============================================================================
    # 子命令: jar - 查看/清空 Cookie罐
    # ============================================================================
    parser_jar = subparsers.add_parser('jar', help='查看或清空持久化 Cookie罐')
    parser_jar.add_argument('--path', type=str, required=True, help='Cookie罐文件路径')
    parser_jar.add_argument('--clear', action='store_true', help='清空 Cookie罐')

    return parser
