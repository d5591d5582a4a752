"""
模块职能：
- 凭据来源（CredentialStore）：按用户名返回身份记录，供登录比对口令。
- 用户表的增删改属于外部 CRUD，这里只读。

函数/类：
- Identity：id / username / password_hash / role / is_active
- CredentialStore：协议（便于测试替换为内存实现）
- SqlCredentialStore：基于 users 表，每次查询开一个短会话
"""
from __future__ import annotations

from typing import Callable, Dict, Optional, Protocol

from pydantic import BaseModel
from sqlalchemy.orm import Session

from authcore.core.models_user import User


class Identity(BaseModel):
    id: int
    username: str
    password_hash: str
    role: str
    is_active: bool = True


class CredentialStore(Protocol):
    def find_by_username(self, username: str) -> Optional[Identity]: ...


class SqlCredentialStore:
    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def find_by_username(self, username: str) -> Optional[Identity]:
        with self._session_factory() as db:
            u = db.query(User).filter(User.username == username).first()
            if u is None:
                return None
            return Identity(id=u.id, username=u.username, password_hash=u.password_hash,
                            role=u.role, is_active=bool(u.is_active))


class InMemoryCredentialStore:
    def __init__(self, identities: Optional[Dict[str, Identity]] = None):
        self._by_name: Dict[str, Identity] = dict(identities or {})

    def add(self, identity: Identity) -> None:
        self._by_name[identity.username] = identity

    def find_by_username(self, username: str) -> Optional[Identity]:
        return self._by_name.get(username)
