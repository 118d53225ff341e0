"""
配置管理模块 - 任务爬虫
统一配置管理：运行配置（SpiderConfig）、执行后端、日志，支持 .env 与 configs/ 任务文件
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Optional, List, Dict, Any, Union
import os
import json
from pathlib import Path
from dotenv import load_dotenv
from loguru import logger

load_dotenv()

# 项目根目录
BASE_DIR = Path(__file__).parent
CONFIG_DIR = BASE_DIR / "configs"


def normalize_cookies(cookies: Any) -> Dict[str, str]:
    """
    规范化 cookies

    支持的格式:
    - "hello=world" 字符串
    - {"key": "hello", "value": "world"} 字典
    - ("hello", "world") 二元组
    - {"hello": "world"} 映射
    - 以上格式组成的列表

    Returns:
        有序字典 {key: value}
    """
    if not cookies:
        return {}

    if isinstance(cookies, dict):
        if "key" in cookies and "value" in cookies:
            return {str(cookies["key"]): str(cookies["value"])}
        return {str(k): str(v) for k, v in cookies.items()}

    if isinstance(cookies, str):
        cookies = [part for part in cookies.split(";") if part.strip()]

    result: Dict[str, str] = {}
    for item in cookies:
        if isinstance(item, str):
            if "=" not in item:
                raise ValueError(f"无效的cookie: {item!r}")
            key, value = item.split("=", 1)
            result[key.strip()] = value.strip()
        elif isinstance(item, dict):
            result.update(normalize_cookies(item))
        elif isinstance(item, (tuple, list)) and len(item) == 2:
            result[str(item[0])] = str(item[1])
        else:
            raise ValueError(f"无效的cookie: {item!r}")
    return result


class ThrottleConfig(BaseModel):
    """节流配置（毫秒）"""
    model_config = ConfigDict(frozen=True)

    min_ms: float = Field(default=0, ge=0, description="最小延迟（毫秒）")
    max_ms: Optional[float] = Field(default=None, ge=0, description="最大延迟（毫秒），为空表示固定延迟")

    @model_validator(mode="after")
    def _check_range(self):
        if self.max_ms is not None and self.max_ms < self.min_ms:
            raise ValueError("throttle max 不能小于 min")
        return self


class SpiderConfig(BaseModel):
    """单次运行配置（运行开始后冻结）"""
    model_config = ConfigDict(frozen=True, extra="forbid")

    # 并发控制
    concurrency: int = Field(default=1, ge=1, description="并发任务数")
    limit: Optional[int] = Field(default=None, ge=1, description="最多创建的任务总数")
    timeout: Optional[float] = Field(default=None, gt=0, description="单个请求超时（秒）")
    throttle: ThrottleConfig = Field(default_factory=ThrottleConfig, description="派发节流")

    # 重试配置
    max_retries: int = Field(default=0, ge=0, description="最大重试次数")
    auto_retry: bool = Field(default=False, description="失败时是否自动重试")

    # Cookie 配置
    jar: Union[bool, str, None] = Field(default=None, description="Cookie罐: True=内存, 路径=持久化, None/False=禁用")
    cookies: Dict[str, str] = Field(default_factory=dict, description="附加到所有请求的cookies")
    jar_flush_every: int = Field(default=10, ge=1, description="持久化Cookie罐的写回间隔（更新次数）")

    @field_validator("cookies", mode="before")
    @classmethod
    def _normalize_cookies(cls, value):
        return normalize_cookies(value)

    @field_validator("throttle", mode="before")
    @classmethod
    def _normalize_throttle(cls, value):
        if isinstance(value, (int, float)):
            return {"min_ms": value}
        if isinstance(value, (tuple, list)):
            return {"min_ms": value[0], "max_ms": value[1] if len(value) > 1 else None}
        return value

    @property
    def jar_enabled(self) -> bool:
        return bool(self.jar)

    @property
    def jar_path(self) -> Optional[Path]:
        if isinstance(self.jar, str) and self.jar:
            return Path(self.jar)
        return None


class BackendConfig(BaseModel):
    """执行后端配置"""
    request_timeout: int = Field(default=30, description="HTTP会话总超时（秒）")
    rotate_user_agent: bool = Field(default=True, description="是否轮换UA")
    headers: Dict[str, str] = Field(default_factory=dict, description="附加请求头")
    verify_ssl: bool = Field(default=True, description="是否校验证书")


class LogConfig(BaseModel):
    """日志配置"""
    log_level: str = Field(default="INFO", description="日志级别")
    log_dir: Path = Field(default=BASE_DIR / "logs", description="日志目录")
    log_file: str = Field(default="spider.log", description="日志文件名")
    rotation: str = Field(default="100 MB", description="日志轮转大小")
    retention: str = Field(default="30 days", description="日志保留时间")


class Config(BaseModel):
    """全局配置"""
    spider: SpiderConfig = Field(default_factory=SpiderConfig)
    backend: BackendConfig = Field(default_factory=BackendConfig)
    log: LogConfig = Field(default_factory=LogConfig)

    # 任务文件内容（可选）
    name: str = Field(default="default", description="配置名称")
    urls: List[Union[str, Dict[str, Any]]] = Field(default_factory=list, description="种子URL列表")
    selectors: Dict[str, str] = Field(default_factory=dict, description="字段 -> CSS选择器")
    scraper: Optional[str] = Field(default=None, description="内置抽取函数名（title/text/links）")

    def __init__(self, **data):
        super().__init__(**data)
        # 创建必要的目录
        self._create_directories()

    def _create_directories(self):
        """创建必要的目录"""
        self.log.log_dir.mkdir(parents=True, exist_ok=True)


# ============================================================================
# 任务文件加载 - 从 configs/ 目录加载
# ============================================================================

def load_config_file(config_file: Path) -> Dict[str, Any]:
    """
    加载任务配置文件

    Args:
        config_file: 配置文件路径

    Returns:
        配置字典

    Raises:
        FileNotFoundError: 配置文件不存在
        json.JSONDecodeError: JSON格式错误
    """
    with open(config_file, 'r', encoding='utf-8') as f:
        return json.load(f)


def create_config_from_dict(data: Dict[str, Any]) -> Config:
    """
    从字典创建Config对象

    Args:
        data: 配置字典（name/urls/selectors/scraper/spider/backend）

    Returns:
        Config实例
    """
    return Config(
        name=data.get("name", "Unknown"),
        urls=data.get("urls", []),
        selectors=data.get("selectors", {}),
        scraper=data.get("scraper"),
        spider=data.get("spider", {}),
        backend=data.get("backend", {}),
    )


def get_job_config(name: str) -> Config:
    """
    按名称加载 configs/ 下的任务配置

    Args:
        name: 配置名称（不含 .json）或文件路径

    Raises:
        ValueError: 配置文件不存在
    """
    path = Path(name)
    if not path.suffix:
        path = CONFIG_DIR / f"{name}.json"
    if not path.exists():
        available = ", ".join(sorted(p.stem for p in CONFIG_DIR.glob("*.json"))) if CONFIG_DIR.exists() else ""
        raise ValueError(f"未知的任务配置: {name}，可用: {available or '无'}")

    logger.info(f"📁 加载任务配置: {path}")
    return create_config_from_dict(load_config_file(path))


# 从环境变量加载配置
def load_config_from_env() -> Config:
    """从环境变量加载配置"""
    limit = os.getenv("SPIDER_LIMIT")
    timeout = os.getenv("SPIDER_TIMEOUT")
    config_data = {
        "spider": {
            "concurrency": int(os.getenv("SPIDER_CONCURRENCY", "1")),
            "limit": int(limit) if limit else None,
            "max_retries": int(os.getenv("SPIDER_MAX_RETRIES", "0")),
            "auto_retry": os.getenv("SPIDER_AUTO_RETRY", "false").lower() == "true",
            "timeout": float(timeout) if timeout else None,
            "jar": os.getenv("SPIDER_JAR") or None,
        },
        "backend": {
            "request_timeout": int(os.getenv("SPIDER_REQUEST_TIMEOUT", "30")),
            "rotate_user_agent": os.getenv("SPIDER_ROTATE_UA", "true").lower() == "true",
        },
        "log": {
            "log_level": os.getenv("LOG_LEVEL", "INFO"),
        }
    }
    return Config(**config_data)


# 全局配置实例（默认从环境变量加载）
config = load_config_from_env()
