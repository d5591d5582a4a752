# authcore/core/context.py
"""
统一提供请求上下文（user_id、username、role、token）。
- 兼容头部：标准 Bearer / 裸 token
- 会话校验交给 app.state.gateway（SessionAuthority），过期会话在这里被惰性清理
- 事件打点：auth_missing_header（其余由 AuthGateway 打点）
"""
from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from authcore.core.errors import Unauthenticated
from authcore.infra.logger import emit
from authcore.services.sessions import Session

_bearer = HTTPBearer(auto_error=False)


class Context(BaseModel):
    user_id: int
    username: str
    role: str
    token: str

    @classmethod
    def from_session(cls, s: Session) -> "Context":
        return cls(user_id=s.user_id, username=s.username, role=s.role, token=s.token)


def extract_token(request: Request, creds: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if creds and creds.credentials:
        return creds.credentials
    # 兼容：Authorization: <token>
    auth = request.headers.get("authorization")
    if auth and " " not in auth.strip():
        return auth.strip()
    return None


def get_context(
    request: Request,
    creds: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> Context:
    token = extract_token(request, creds)
    if not token:
        emit("auth_missing_header", path=str(request.url.path))
        raise Unauthenticated("Missing Authorization header")
    session = request.app.state.gateway.authenticate(token)
    return Context.from_session(session)
