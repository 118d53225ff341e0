"""
Cookie罐模块

运行内共享的 cookie 存储：
- 构造请求时合并（罐 < 运行配置 < 请求自身，后者覆盖前者）
- 响应后把后端报告的 set-cookie 写回罐
- 配置了路径时：启动时加载（文件不存在视为空），结束时原子写回
"""
import json
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Union
from loguru import logger


class CookieJar:
    """
    Cookie罐

    写操作只应在调度器的完成处理阶段调用（串行），并发中的任务只读取快照。
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path else None
        self._cookies: Dict[str, str] = {}
        self.dirty = False

    def __len__(self) -> int:
        return len(self._cookies)

    def __contains__(self, key: str) -> bool:
        return key in self._cookies

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self._cookies.get(key, default)

    def snapshot(self) -> Dict[str, str]:
        """当前 cookies 的副本"""
        return dict(self._cookies)

    def update(self, cookies: Optional[Dict[str, str]]) -> int:
        """
        写入 cookies

        Returns:
            实际变化的 cookie 数
        """
        changed = 0
        for key, value in (cookies or {}).items():
            if self._cookies.get(key) != value:
                self._cookies[key] = value
                changed += 1
        if changed:
            self.dirty = True
        return changed

    def merge_for_request(self, *layers: Optional[Dict[str, str]]) -> Dict[str, str]:
        """以罐快照为底，依次叠加各层 cookies（后者覆盖前者）"""
        merged = self.snapshot()
        for layer in layers:
            if layer:
                merged.update(layer)
        return merged

    def clear(self):
        if self._cookies:
            self.dirty = True
        self._cookies.clear()

    def load(self) -> int:
        """
        从文件加载

        Returns:
            加载的 cookie 数（文件不存在或损坏时为 0）
        """
        if not self.path:
            return 0

        if not self.path.exists():
            logger.debug(f"🍪 Cookie罐文件不存在，使用空罐: {self.path}")
            return 0

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                payload = json.load(f)
            cookies = payload.get("cookies", {}) if isinstance(payload, dict) else {}
            self._cookies = {str(k): str(v) for k, v in cookies.items()}
        except (OSError, ValueError, AttributeError) as e:
            logger.warning(f"⚠️  Cookie罐文件无法读取，使用空罐: {self.path} ({e})")
            self._cookies = {}
            return 0

        self.dirty = False
        logger.info(f"🍪 加载Cookie罐: {self.path} ({len(self._cookies)} 个)")
        return len(self._cookies)

    def save(self) -> bool:
        """原子写回文件（同目录临时文件 + os.replace）"""
        if not self.path:
            return False

        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "cookies": self._cookies,
            "updated_at": datetime.now().isoformat(),
        }
        fd, tmp_path = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(payload, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

        self.dirty = False
        logger.debug(f"🍪 Cookie罐已保存: {self.path} ({len(self._cookies)} 个)")
        return True
