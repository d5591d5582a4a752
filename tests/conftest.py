# tests/conftest.py
# 先设环境变量，再导入 authcore（engine 在导入时绑定 DATABASE_URL）
import os
import tempfile

_TMP = tempfile.mkdtemp(prefix="authcore_pytest_")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'api.db')}"
os.environ["LOG_TO_FILE"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["KV_BACKEND"] = "memory"
os.environ.setdefault("AUTH_CAPTCHA_REQUIRED", "false")

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from authcore.core import models, models_user  # noqa: E402,F401  # 注册表结构
from authcore.infra.db import Base  # noqa: E402
from authcore.infra.kv import MemoryKeyValueStore  # noqa: E402


class FakeClock:
    """可手动拨动的时钟，替代 time.time。"""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return MemoryKeyValueStore(clock=clock)


@pytest.fixture
def db():
    """独立的内存 SQLite，每个用例一份干净的表。"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    s = Session()
    try:
        yield s
    finally:
        s.close()
        engine.dispose()
