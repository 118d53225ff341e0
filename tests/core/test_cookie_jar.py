"""
CookieJar 单元测试（临时目录）
"""
import json
import shutil
import tempfile
import unittest
from pathlib import Path

from core.cookie_jar import CookieJar


class TestCookieJarMemory(unittest.TestCase):
    """内存罐"""

    def test_update_counts_changes(self):
        jar = CookieJar()
        self.assertEqual(jar.update({"a": "1", "b": "2"}), 2)
        self.assertEqual(jar.update({"a": "1", "b": "3"}), 1)
        self.assertEqual(jar.update(None), 0)
        self.assertEqual(len(jar), 2)
        self.assertIn("b", jar)
        self.assertEqual(jar.get("b"), "3")
        self.assertTrue(jar.dirty)

    def test_merge_later_layers_win(self):
        jar = CookieJar()
        jar.update({"sid": "jar", "lang": "en"})
        merged = jar.merge_for_request({"lang": "zh", "theme": "dark"}, {"theme": "light"}, None)
        self.assertEqual(merged, {"sid": "jar", "lang": "zh", "theme": "light"})
        self.assertEqual(jar.snapshot(), {"sid": "jar", "lang": "en"})

    def test_snapshot_is_copy(self):
        jar = CookieJar()
        jar.update({"a": "1"})
        snap = jar.snapshot()
        snap["a"] = "changed"
        self.assertEqual(jar.get("a"), "1")

    def test_memory_jar_does_not_persist(self):
        jar = CookieJar()
        self.assertEqual(jar.load(), 0)
        self.assertFalse(jar.save())


class TestCookieJarFile(unittest.TestCase):
    """持久化罐"""

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()
        self.path = Path(self.test_dir) / "cookies" / "jar.json"

    def tearDown(self):
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def test_missing_file_is_empty(self):
        jar = CookieJar(self.path)
        self.assertEqual(jar.load(), 0)
        self.assertEqual(len(jar), 0)

    def test_save_and_load_roundtrip(self):
        jar = CookieJar(self.path)
        jar.update({"sid": "abc"})
        self.assertTrue(jar.save())
        self.assertFalse(jar.dirty)

        payload = json.loads(self.path.read_text(encoding="utf-8"))
        self.assertEqual(payload["cookies"], {"sid": "abc"})
        self.assertIn("updated_at", payload)

        other = CookieJar(str(self.path))
        self.assertEqual(other.load(), 1)
        self.assertEqual(other.get("sid"), "abc")

    def test_save_leaves_no_temp_files(self):
        jar = CookieJar(self.path)
        jar.update({"a": "1"})
        jar.save()
        jar.update({"a": "2"})
        jar.save()
        self.assertEqual([p.name for p in self.path.parent.iterdir()], ["jar.json"])

    def test_corrupt_file_is_empty(self):
        self.path.parent.mkdir(parents=True)
        self.path.write_text("{not json", encoding="utf-8")
        jar = CookieJar(self.path)
        self.assertEqual(jar.load(), 0)
        self.assertEqual(jar.snapshot(), {})

    def test_clear(self):
        jar = CookieJar(self.path)
        jar.update({"a": "1"})
        jar.save()
        jar.clear()
        self.assertTrue(jar.dirty)
        jar.save()
        self.assertEqual(CookieJar(self.path).load(), 0)


if __name__ == "__main__":
    unittest.main()
