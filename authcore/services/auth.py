# authcore/services/auth.py
"""
登录网关：外部调用方唯一的入口。

一次登录尝试的状态：Received → CredentialChecked → TokenIssued；任何一步失败即 Rejected。
1) 用户名 / 口令为空 → ValidationError
2) 带了验证码通过凭证（或配置要求必须带）→ consume_ticket() 必须成功，否则 TicketInvalid
3) 查身份；不存在 / 已停用 → AuthFailed（对外不区分原因）
4) 比对口令；不一致 → AuthFailed
5) SessionAuthority.issue()（挤掉该用户的旧会话）→ LoginResult

日志事件：
- auth_login_attempt / auth_login_failed（reason 只进日志）/ auth_login_success
- auth_logout / auth_whoami_rejected
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from authcore.core.config import AuthSettings
from authcore.core.errors import AuthFailed, TicketInvalid, Unauthenticated, ValidationError
from authcore.core.security import verify_password
from authcore.infra.logger import emit
from authcore.services.captcha import CaptchaChallenge
from authcore.services.credentials import CredentialStore
from authcore.services.sessions import Session, SessionAuthority

TOKEN_TYPE = "Bearer"


class LoginResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    token: str
    token_type: str = TOKEN_TYPE
    expires_in: int
    user_id: int
    username: str
    role: str


def strip_bearer(raw: Optional[str]) -> Optional[str]:
    if not raw:
        return None
    parts = raw.split(None, 1)
    if parts and parts[0].lower() == TOKEN_TYPE.lower():
        parts = parts[1:]
    return parts[0].strip() if parts else None


class AuthGateway:
    def __init__(self, credentials: CredentialStore, sessions: SessionAuthority,
                 captcha: CaptchaChallenge, settings: AuthSettings = AuthSettings()):
        self.credentials = credentials
        self.sessions = sessions
        self.captcha = captcha
        self.settings = settings

    def _summary(self, session: Session) -> LoginResult:
        return LoginResult(token=session.token, expires_in=self.sessions.ttl_seconds,
                           user_id=session.user_id, username=session.username, role=session.role)

    def login(self, username: Optional[str], password: Optional[str],
              captcha_ticket: Optional[str] = None) -> LoginResult:
        if not username or not username.strip():
            raise ValidationError("username must not be blank")
        if not password or not password.strip():
            raise ValidationError("password must not be blank")
        emit("auth_login_attempt", username=username, with_ticket=bool(captcha_ticket))

        if captcha_ticket or self.settings.captcha_required:
            if not self.captcha.consume_ticket(captcha_ticket):
                emit("auth_login_failed", username=username, reason="captcha_ticket")
                raise TicketInvalid()

        identity = self.credentials.find_by_username(username)
        if identity is None or not identity.is_active:
            reason = "inactive" if identity else "not_found"
            emit("auth_login_failed", username=username, reason=reason)
            raise AuthFailed()

        if not verify_password(password, identity.password_hash, self.settings.legacy_password_salt):
            emit("auth_login_failed", username=username, reason="bad_password")
            raise AuthFailed()

        token = self.sessions.issue(identity.id, identity.username, identity.role)
        emit("auth_login_success", user_id=identity.id, username=identity.username, role=identity.role)
        return LoginResult(token=token, expires_in=self.sessions.ttl_seconds,
                           user_id=identity.id, username=identity.username, role=identity.role)

    def logout(self, raw_token: Optional[str]) -> None:
        token = strip_bearer(raw_token)
        session = self.sessions.validate(token)
        self.sessions.revoke(token)
        emit("auth_logout", user_id=session.user_id if session else None)

    def authenticate(self, raw_token: Optional[str]) -> Session:
        token = strip_bearer(raw_token)
        if not token:
            emit("auth_whoami_rejected", reason="missing")
            raise Unauthenticated("Not authenticated")
        session = self.sessions.validate(token)
        if session is None:
            emit("auth_whoami_rejected", reason="invalid_or_expired")
            raise Unauthenticated("Session expired, please log in again")
        return session

    def who_am_i(self, raw_token: Optional[str]) -> LoginResult:
        return self._summary(self.authenticate(raw_token))
