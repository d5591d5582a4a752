# authcore/infra/db.py
""""模块职能：

读取 DATABASE_URL，创建 SQLAlchemy 引擎

暴露 Base、SessionLocal、get_db()（FastAPI 依赖）

init_db()：启动时统一建表（导入模型模块以注册到 Base.metadata）"""

import os
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./authcore.db")

Base = declarative_base()

engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {},
)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def init_db():
    from authcore.core import models, models_user  # noqa: F401  # 注册表结构
    Base.metadata.create_all(bind=engine)


def get_db() -> Generator[Session, None, None]:
    """FastAPI 依赖函数：yield 一个 Session，用后自动关闭。"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
