"""
模块职能：
- 会话 / 验证码 / 通过凭证共用的键值存储（带 TTL），由服务启动时构造、关闭时释放。
- 所有“读-改-写”都走原子操作：take()（读并删除）或 lock(name) 临界区。

实现：
- MemoryKeyValueStore：单进程内存版，一把可重入锁保护全部状态；过期惰性清理 + purge_expired()。
- RedisKeyValueStore：多实例部署用；take() 走 MULTI/EXEC，lock() 用 redis-py 分布式锁。

日志：
- kv_open / kv_close / kv_purge
"""
from __future__ import annotations

import math
import threading
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Callable, ContextManager, Dict, Iterator, Optional, Tuple

from redis import Redis

from authcore.core.config import AuthSettings
from authcore.infra.logger import emit


class KeyValueStore(ABC):
    backend: str = "abstract"

    @abstractmethod
    def put(self, key: str, value: str, ttl_seconds: float) -> None: ...

    @abstractmethod
    def peek(self, key: str) -> Optional[str]:
        """读取但不删除；不存在或已过期返回 None。"""

    @abstractmethod
    def take(self, key: str) -> Optional[str]:
        """原子地读取并删除；同一个 key 只有一个调用方能拿到值。"""

    @abstractmethod
    def delete(self, key: str) -> bool: ...

    @abstractmethod
    def lock(self, name: str) -> ContextManager: ...

    def purge_expired(self) -> int:
        return 0

    def close(self) -> None:
        pass


class MemoryKeyValueStore(KeyValueStore):
    backend = "memory"

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._data: Dict[str, Tuple[str, float]] = {}
        self._lock = threading.RLock()

    def _live(self, key: str) -> Optional[str]:
        # 调用方须已持有 self._lock
        item = self._data.get(key)
        if item is None:
            return None
        value, expires_at = item
        if self._clock() >= expires_at:
            del self._data[key]
            return None
        return value

    def put(self, key: str, value: str, ttl_seconds: float) -> None:
        with self._lock:
            self._data[key] = (value, self._clock() + ttl_seconds)

    def peek(self, key: str) -> Optional[str]:
        with self._lock:
            return self._live(key)

    def take(self, key: str) -> Optional[str]:
        with self._lock:
            value = self._live(key)
            self._data.pop(key, None)
            return value

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    @contextmanager
    def lock(self, name: str) -> Iterator[None]:
        with self._lock:
            yield

    def purge_expired(self) -> int:
        with self._lock:
            now = self._clock()
            stale = [k for k, (_, exp) in self._data.items() if now >= exp]
            for k in stale:
                del self._data[k]
        if stale:
            emit("kv_purge", backend=self.backend, count=len(stale))
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


class RedisKeyValueStore(KeyValueStore):
    backend = "redis"

    LOCK_TIMEOUT = 5.0

    def __init__(self, redis_url: str = "", *, client: Optional[Redis] = None, prefix: str = "authcore:"):
        self.client = client if client is not None else Redis.from_url(redis_url, decode_responses=True)
        self.prefix = prefix

    def _k(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def put(self, key: str, value: str, ttl_seconds: float) -> None:
        # Redis 不接受 0 / 负数 TTL
        self.client.set(self._k(key), value, ex=max(1, math.ceil(ttl_seconds)))

    def peek(self, key: str) -> Optional[str]:
        return self.client.get(self._k(key))

    def take(self, key: str) -> Optional[str]:
        pipe = self.client.pipeline(transaction=True)
        pipe.get(self._k(key))
        pipe.delete(self._k(key))
        value, _ = pipe.execute()
        return value

    def delete(self, key: str) -> bool:
        return bool(self.client.delete(self._k(key)))

    def lock(self, name: str) -> ContextManager:
        return self.client.lock(
            self._k(f"lock:{name}"),
            timeout=self.LOCK_TIMEOUT,
            blocking_timeout=self.LOCK_TIMEOUT,
        )

    def close(self) -> None:
        self.client.close()


def build_store(settings: AuthSettings, clock: Callable[[], float] = time.time) -> KeyValueStore:
    if settings.kv_backend == "redis":
        store: KeyValueStore = RedisKeyValueStore(settings.redis_url)
    elif settings.kv_backend == "memory":
        store = MemoryKeyValueStore(clock=clock)
    else:
        raise ValueError(f"unknown KV_BACKEND: {settings.kv_backend}")
    emit("kv_open", backend=store.backend)
    return store
