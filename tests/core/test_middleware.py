"""
中间件管道单元测试
"""
import asyncio
import unittest

from core.errors import DiscardError, OverrideError
from core.job import Job, Request, Response
from core.middleware import MiddlewarePipeline, call_with_next, _MISSING


class TestCallWithNext(unittest.TestCase):
    """call_with_next 测试"""

    def test_sync_next_without_args(self):
        err, value = asyncio.run(call_with_next(lambda req, next_: next_(), "req"))
        self.assertIsNone(err)
        self.assertIs(value, _MISSING)

    def test_sync_next_with_error(self):
        boom = RuntimeError("too-far")
        err, _ = asyncio.run(call_with_next(lambda req, next_: next_(boom), "req"))
        self.assertIs(err, boom)

    def test_sync_raise_is_error(self):
        def hook(req, next_):
            raise ValueError("raised")

        err, _ = asyncio.run(call_with_next(hook, "req"))
        self.assertIsInstance(err, ValueError)

    def test_sync_hook_calls_next_later(self):
        """同步钩子可以稍后（事件循环回调中）调用 next"""
        def hook(req, next_):
            asyncio.get_running_loop().call_later(0.01, next_, None, "late")

        err, value = asyncio.run(call_with_next(hook, "req"))
        self.assertIsNone(err)
        self.assertEqual(value, "late")

    def test_async_hook_returning_continues(self):
        async def hook(req, next_):
            await asyncio.sleep(0)

        err, value = asyncio.run(call_with_next(hook, "req"))
        self.assertIsNone(err)
        self.assertIs(value, _MISSING)

    def test_async_raise_is_error(self):
        async def hook(req, next_):
            await asyncio.sleep(0)
            raise RuntimeError("async")

        err, _ = asyncio.run(call_with_next(hook, "req"))
        self.assertEqual(str(err), "async")

    def test_second_next_ignored(self):
        def hook(req, next_):
            next_(None, 1)
            next_(RuntimeError("ignored"))

        err, value = asyncio.run(call_with_next(hook, "req"))
        self.assertIsNone(err)
        self.assertEqual(value, 1)


class TestMiddlewarePipeline(unittest.TestCase):
    """MiddlewarePipeline 测试"""

    def make_job(self, index=0, data=None):
        return Job(req=Request(url=f"https://example.com/{index}", index=index), res=Response(data=data))

    def test_run_before_discard(self):
        pipeline = MiddlewarePipeline()
        pipeline.use_before(lambda req, next_: next_(RuntimeError("too-far") if req.index > 1 else None))
        self.assertIsNone(asyncio.run(pipeline.run_before(self.make_job(1))))
        err = asyncio.run(pipeline.run_before(self.make_job(2)))
        self.assertIsInstance(err, DiscardError)
        self.assertEqual(err.message, "too-far")

    def test_stages_run_in_order_and_stop_on_error(self):
        pipeline = MiddlewarePipeline()
        order = []

        def first(req, next_):
            order.append("first")
            next_(RuntimeError("stop"))

        def second(req, next_):
            order.append("second")
            next_()

        pipeline.use_before(first).use_before(second)
        asyncio.run(pipeline.run_before(self.make_job()))
        self.assertEqual(order, ["first"])

    def test_run_after_replaces_data(self):
        pipeline = MiddlewarePipeline()
        pipeline.use_after(lambda req, res, next_: next_(None, res.data * 2))
        pipeline.use_after(lambda req, res, next_: next_(None, res.data + 1))
        job = self.make_job(data=5)
        self.assertIsNone(asyncio.run(pipeline.run_after(job)))
        self.assertEqual(job.res.data, 11)

    def test_run_after_override(self):
        pipeline = MiddlewarePipeline()
        pipeline.use_after(lambda req, res, next_: next_(RuntimeError("empty page")))
        err = asyncio.run(pipeline.run_after(self.make_job()))
        self.assertIsInstance(err, OverrideError)
        self.assertEqual(err.message, "empty page")

    def test_use_object(self):
        class OnlyAfter:
            def after_scraping(self, req, res, next_):
                next_()

        pipeline = MiddlewarePipeline().use(OnlyAfter())
        self.assertEqual(len(pipeline.before), 0)
        self.assertEqual(len(pipeline.after), 1)
        self.assertEqual(len(pipeline), 1)

    def test_use_object_without_hooks(self):
        with self.assertRaises(TypeError):
            MiddlewarePipeline().use(object())


if __name__ == "__main__":
    unittest.main()
