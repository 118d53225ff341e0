"""
CLI handlers 单元测试
"""
import asyncio
import json
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

from cli.commands import create_parser
from config import create_config_from_dict
from cli.handlers import (
    handle_crawl,
    handle_jar,
    job_record,
    load_urls_file,
    parse_selector_args,
    print_remains,
    print_statistics,
    spider_overrides,
)
from core.cookie_jar import CookieJar
from core.errors import BackendError, ConfigError
from core.job import Job, Request, Response
from core.stats import SpiderStats


def parse(*argv):
    return create_parser().parse_args(list(argv))


class TestArgumentHelpers(unittest.TestCase):
    """参数辅助函数"""

    def test_parse_selector_args(self):
        self.assertEqual(
            parse_selector_args(["title = h1", "links=a@href[]", "q=input[name=q]@value"]),
            {"title": "h1", "links": "a@href[]", "q": "input[name=q]@value"},
        )

    def test_parse_selector_args_invalid(self):
        with self.assertRaises(ConfigError):
            parse_selector_args(["h1"])

    def test_spider_overrides(self):
        args = parse("crawl", "--concurrency", "3", "--auto-retry", "--throttle", "100", "--jar", "j.json")
        self.assertEqual(spider_overrides(args), {
            "concurrency": 3,
            "auto_retry": True,
            "jar": "j.json",
            "throttle": {"min_ms": 100.0, "max_ms": None},
        })

    def test_spider_overrides_empty(self):
        self.assertEqual(spider_overrides(parse("crawl")), {})

    def test_throttle_too_many_values(self):
        with self.assertRaises(ConfigError):
            spider_overrides(parse("crawl", "--throttle", "1", "2", "3"))

    def test_load_urls_file(self):
        tmp = tempfile.mkdtemp()
        try:
            path = Path(tmp) / "urls.txt"
            path.write_text("# seeds\nhttps://a.com\n\n  https://b.com  \n", encoding="utf-8")
            self.assertEqual(load_urls_file(str(path)), ["https://a.com", "https://b.com"])
        finally:
            shutil.rmtree(tmp, ignore_errors=True)

    def test_job_record(self):
        req = Request(url="https://a.com", index=2, retries=1)
        self.assertEqual(job_record(None, req, Response(data={"t": 1})), {
            "index": 2, "url": "https://a.com", "retries": 1, "data": {"t": 1}, "error": None,
        })
        record = job_record(BackendError("status-404"), req, None)
        self.assertEqual(record["error"], {"kind": "backend", "message": "status-404"})
        self.assertIsNone(record["data"])


class TestPrintStatistics(unittest.TestCase):
    """print_statistics / print_remains 输出"""

    def test_print_statistics(self):
        stats = SpiderStats()
        stats.record_success()
        stats.record_failure("status-500")
        spider = MagicMock()
        spider.stats = stats
        print_statistics(spider)

    def test_print_remains(self):
        job = Job(req=Request(url="https://a.com"), error=BackendError("status-404"))
        print_remains([job])
        print_remains([])


class TestHandleCrawl(unittest.TestCase):
    """handle_crawl 测试（mock 执行后端）"""

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()
        env_patch = patch("cli.handlers.env_config", create_config_from_dict({"name": "cli"}))
        env_patch.start()
        self.addCleanup(env_patch.stop)

    def tearDown(self):
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def make_backend(self, data_by_url):
        backend = MagicMock()
        backend.__aenter__ = AsyncMock(return_value=backend)
        backend.__aexit__ = AsyncMock(return_value=None)

        async def execute(request, scraper, timeout=None):
            if request.url not in data_by_url:
                raise BackendError("status-404")
            return Response(url=request.url, status=200, data=data_by_url[request.url])

        backend.execute = execute
        return backend

    @patch("cli.handlers.AiohttpBackend")
    def test_crawl_writes_output(self, mock_backend_cls):
        mock_backend_cls.return_value = self.make_backend({"https://a.com": {"title": "A"}})
        output = Path(self.test_dir) / "out.jsonl"
        args = parse(
            "crawl", "--url", "https://a.com", "--url", "https://missing.com",
            "--concurrency", "2", "--output", str(output), "--no-progress",
        )

        result = asyncio.run(handle_crawl(args))

        self.assertIsNone(result.error)
        self.assertEqual(result.stats.successes, 1)
        self.assertEqual([job.req.url for job in result.remains], ["https://missing.com"])
        records = [json.loads(line) for line in output.read_text(encoding="utf-8").splitlines()]
        self.assertEqual(len(records), 2)
        by_url = {r["url"]: r for r in records}
        self.assertEqual(by_url["https://a.com"]["data"], {"title": "A"})
        self.assertEqual(by_url["https://missing.com"]["error"]["message"], "status-404")

    @patch("cli.handlers.AiohttpBackend")
    def test_crawl_with_job_file(self, mock_backend_cls):
        mock_backend_cls.return_value = self.make_backend({"https://job.com/1": "ok"})
        job_file = Path(self.test_dir) / "job.json"
        job_file.write_text(json.dumps({
            "name": "job", "urls": ["https://job.com/1"], "spider": {"concurrency": 2},
        }), encoding="utf-8")

        result = asyncio.run(handle_crawl(parse("crawl", "--config", str(job_file), "--no-progress")))

        self.assertEqual(result.stats.successes, 1)
        self.assertEqual(result.remains, [])

    def test_crawl_without_seeds(self):
        result = asyncio.run(handle_crawl(parse("crawl", "--no-progress")))
        self.assertIsNone(result)


class TestHandleJar(unittest.TestCase):
    """handle_jar 测试"""

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()
        self.path = Path(self.test_dir) / "jar.json"

    def tearDown(self):
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def test_show_empty(self):
        asyncio.run(handle_jar(parse("jar", "--path", str(self.path))))
        self.assertFalse(self.path.exists())

    def test_show_and_clear(self):
        jar = CookieJar(self.path)
        jar.update({"sid": "abc"})
        jar.save()

        asyncio.run(handle_jar(parse("jar", "--path", str(self.path))))
        self.assertEqual(CookieJar(self.path).load(), 1)

        asyncio.run(handle_jar(parse("jar", "--path", str(self.path), "--clear")))
        self.assertEqual(CookieJar(self.path).load(), 0)


if __name__ == "__main__":
    unittest.main()
