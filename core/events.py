"""
事件模块

同步事件通道：监听器按注册顺序、在调度循环内同步调用
"""
from collections import defaultdict
from typing import Any, Callable, Dict, List
from loguru import logger


class EventEmitter:
    """
    简单事件发射器

    Example:
        events = EventEmitter()
        events.on("job:retry", lambda job, when: print(job.req.url))
        events.emit("job:retry", job, "later")
    """

    def __init__(self):
        self._listeners: Dict[str, List[Callable[..., Any]]] = defaultdict(list)

    def on(self, event: str, handler: Callable[..., Any]) -> "EventEmitter":
        """注册监听器"""
        self._listeners[event].append(handler)
        return self

    def once(self, event: str, handler: Callable[..., Any]) -> "EventEmitter":
        """注册只触发一次的监听器"""
        def wrapper(*args):
            self.off(event, wrapper)
            return handler(*args)

        wrapper.__wrapped__ = handler
        return self.on(event, wrapper)

    def off(self, event: str, handler: Callable[..., Any]) -> "EventEmitter":
        """移除监听器（同一个函数的 once 包装也会被移除）"""
        self._listeners[event] = [
            h for h in self._listeners[event]
            if h is not handler and getattr(h, "__wrapped__", None) is not handler
        ]
        return self

    def listeners(self, event: str) -> List[Callable[..., Any]]:
        return list(self._listeners.get(event, []))

    def emit(self, event: str, *args) -> int:
        """
        触发事件

        Returns:
            被调用的监听器数量
        """
        handlers = self.listeners(event)
        for handler in handlers:
            try:
                handler(*args)
            except Exception:
                logger.exception(f"❌ 事件监听器出错: {event}")
        return len(handlers)
