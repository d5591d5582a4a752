# authcore/core/models_user.py
""""定义 User ORM 实体（凭据来源）：
id/username/password_hash/role/is_active/created_at。

role 存角色编码（如 ADMIN / USER），与 roles.code 对应。
用户的增删改属于外部 CRUD，本核心只读。"""
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from authcore.infra.db import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(64), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(50), nullable=False, default="USER")
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
