"""
模块职能：
- 会话签发 / 校验 / 吊销；同一用户同一时刻只保留一个有效会话（新登录挤掉旧会话）。
- 状态只经由注入的 KeyValueStore 读写，换成 Redis 时调用方无需改动。

存储布局：
- session:token:<token> -> Session JSON（TTL = 会话有效期）
- session:user:<user_id> -> 当前 token

并发：
- issue / revoke / revoke_by_user 都在 lock("session-user:<user_id>") 内完成，
  两个并发登录不会留下两个有效会话。

日志：
- sess_issued / sess_evicted / sess_expired / sess_revoked
"""
from __future__ import annotations

import time
from typing import Callable, Optional

from pydantic import BaseModel

from authcore.core.security import new_session_token
from authcore.infra.kv import KeyValueStore
from authcore.infra.logger import emit


class Session(BaseModel):
    token: str
    user_id: int
    username: str
    role: str
    issued_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def remaining_seconds(self, now: float) -> int:
        return max(0, int(self.expires_at - now))


def _token_key(token: str) -> str:
    return f"session:token:{token}"


def _user_key(user_id) -> str:
    return f"session:user:{user_id}"


def _user_lock(user_id) -> str:
    return f"session-user:{user_id}"


class SessionAuthority:
    def __init__(self, store: KeyValueStore, ttl_seconds: int = 604800,
                 clock: Callable[[], float] = time.time):
        self._store = store
        self._ttl = ttl_seconds
        self._clock = clock

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    def _load(self, token: str) -> Optional[Session]:
        raw = self._store.peek(_token_key(token))
        return Session.model_validate_json(raw) if raw else None

    def _drop(self, session: Session) -> None:
        # 调用方须持有该用户的锁
        self._store.delete(_token_key(session.token))
        if self._store.peek(_user_key(session.user_id)) == session.token:
            self._store.delete(_user_key(session.user_id))

    def issue(self, user_id: int, username: str, role: str) -> str:
        token = new_session_token()
        now = self._clock()
        session = Session(token=token, user_id=user_id, username=username, role=role,
                          issued_at=now, expires_at=now + self._ttl)
        with self._store.lock(_user_lock(user_id)):
            old = self._store.peek(_user_key(user_id))
            if old:
                self._store.delete(_token_key(old))
                emit("sess_evicted", user_id=user_id, reason="superseded")
            self._store.put(_token_key(token), session.model_dump_json(), self._ttl)
            self._store.put(_user_key(user_id), token, self._ttl)
        emit("sess_issued", user_id=user_id, username=username, role=role, ttl=self._ttl)
        return token

    def validate(self, token: Optional[str]) -> Optional[Session]:
        if not token:
            return None
        session = self._load(token)
        if session is None:
            return None
        if session.is_expired(self._clock()):
            with self._store.lock(_user_lock(session.user_id)):
                self._drop(session)
            emit("sess_expired", user_id=session.user_id)
            return None
        return session

    def revoke(self, token: Optional[str]) -> None:
        if not token:
            return
        session = self._load(token)
        if session is None:
            # 没有会话体也要删掉 token 键（可能是过期残留）
            self._store.delete(_token_key(token))
            return
        with self._store.lock(_user_lock(session.user_id)):
            self._drop(session)
        emit("sess_revoked", user_id=session.user_id, reason="logout")

    def revoke_by_user(self, user_id: int) -> None:
        with self._store.lock(_user_lock(user_id)):
            token = self._store.take(_user_key(user_id))
            if token:
                self._store.delete(_token_key(token))
        if token:
            emit("sess_revoked", user_id=user_id, reason="by_user")

    def session_for_user(self, user_id: int) -> Optional[Session]:
        token = self._store.peek(_user_key(user_id))
        return self.validate(token) if token else None
