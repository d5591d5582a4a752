""""
模块职能：

定义权限相关的三张表：

permissions：权限节点（菜单 / 按钮 / 接口），parent_id=0 表示根，逻辑删除

roles：角色（编码唯一），角色的增删改属于外部 CRUD，这里只为关联解析而建表

role_permissions：角色-权限多对多关联，(role_id, permission_id) 复合主键

主要类型：

PermissionKind：MENU / BUTTON / API

Permission / Role / RolePermission"""

# authcore/core/models.py
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from authcore.infra.db import Base


class PermissionKind(str, Enum):
    MENU = "MENU"
    BUTTON = "BUTTON"
    API = "API"


ROOT_PARENT_ID = 0


class Permission(Base):
    __tablename__ = "permissions"
    id = Column(Integer, primary_key=True, autoincrement=True)
    # 唯一且创建后不可改；逻辑删除后仍占用（唯一索引不区分 deleted）
    code = Column(String(50), unique=True, nullable=False, index=True)
    name = Column(String(50), nullable=False)
    kind = Column(String(10), nullable=False)
    parent_id = Column(Integer, nullable=False, default=ROOT_PARENT_ID, index=True)
    path = Column(String(200), nullable=True)
    icon = Column(String(50), nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)
    enabled = Column(Boolean, nullable=False, default=True)
    deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<Permission {self.id} {self.code} parent={self.parent_id}>"


class Role(Base):
    __tablename__ = "roles"
    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(50), unique=True, nullable=False, index=True)
    name = Column(String(50), nullable=False)
    description = Column(String(200), nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)
    enabled = Column(Boolean, nullable=False, default=True)
    deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class RolePermission(Base):
    __tablename__ = "role_permissions"
    role_id = Column(Integer, primary_key=True, index=True)
    permission_id = Column(Integer, primary_key=True)
