# authcore/api/auth.py
"""
登录 / 登出 / 当前用户。

- POST /auth/login    {username, password, captchaToken?} → {token, tokenType, expiresIn, userId, username, role}
- POST /auth/logout   Authorization: Bearer <token>，永远返回成功
- GET  /auth/me       Authorization: Bearer <token> → 同登录返回结构；无效 / 过期 → 401
- GET  /auth/permissions  当前用户角色下启用的权限树

日志事件由 AuthGateway 发出；这里只补 ip / ua。
"""
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from pydantic import BaseModel

from authcore.api.deps.auth import get_gateway, get_permission_graph
from authcore.core.context import Context, get_context
from authcore.core.result import ok
from authcore.infra.logger import emit
from authcore.services.auth import AuthGateway
from authcore.services.permissions import PermissionGraph, build_tree, to_view

# 注意：这里不要再写 prefix="/api/v1"
router = APIRouter(prefix="/auth", tags=["auth"])


class LoginInput(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None
    captchaToken: Optional[str] = None


@router.post("/login")
def login(body: LoginInput, request: Request, gateway: AuthGateway = Depends(get_gateway)):
    emit(
        "api_login",
        username=body.username,
        ip=str(request.client.host) if request.client else None,
        ua=request.headers.get("user-agent"),
    )
    result = gateway.login(body.username, body.password, body.captchaToken)
    return ok(result.model_dump(by_alias=True), "login succeeded")


@router.post("/logout")
def logout(authorization: Optional[str] = Header(default=None),
           gateway: AuthGateway = Depends(get_gateway)):
    gateway.logout(authorization)
    return ok(None, "logout succeeded")


@router.get("/me")
def whoami(authorization: Optional[str] = Header(default=None),
           gateway: AuthGateway = Depends(get_gateway)):
    return ok(gateway.who_am_i(authorization).model_dump(by_alias=True))


@router.get("/permissions")
def my_permissions(ctx: Context = Depends(get_context),
                   graph: PermissionGraph = Depends(get_permission_graph)):
    perms = graph.permissions_for_role_code(ctx.role)
    return ok(build_tree([to_view(p) for p in perms]))
