# authcore/api/deps/auth.py
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from authcore.core.context import Context, get_context
from authcore.core.errors import Forbidden
from authcore.infra.db import get_db
from authcore.infra.logger import emit
from authcore.services.auth import AuthGateway
from authcore.services.captcha import CaptchaChallenge
from authcore.services.permissions import PermissionGraph


def get_gateway(request: Request) -> AuthGateway:
    return request.app.state.gateway


def get_captcha(request: Request) -> CaptchaChallenge:
    return request.app.state.captcha


def get_permission_graph(db: Session = Depends(get_db)) -> PermissionGraph:
    return PermissionGraph(db)


def require_admin(request: Request, ctx: Context = Depends(get_context)) -> Context:
    """
    仅管理员角色可通过；角色编码取 settings.admin_role_code（大小写不敏感）。
    非管理员 → 403，需以有权限的身份重新登录。
    """
    admin_code = request.app.state.settings.admin_role_code
    if ctx.role.upper() != admin_code.upper():
        emit("auth_forbidden", user_id=ctx.user_id, role=ctx.role, path=str(request.url.path))
        raise Forbidden()
    return ctx
