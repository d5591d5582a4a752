# authcore/core/config.py
"""
模块职能：
- 从环境变量（.env / .env.example 已由入口加载）读取访问控制相关配置。
- AuthSettings.from_env()：每次调用都重新读取，便于测试里改环境变量；
  服务启动时在 lifespan 中构造一次并注入各服务。
"""
import os

from pydantic import BaseModel, Field

# 旧口令摘要使用的固定盐（已入库口令依赖它，不能随意更换）
DEFAULT_LEGACY_SALT = "Antigravity@2024"


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class AuthSettings(BaseModel):
    session_ttl_seconds: int = Field(default=7 * 24 * 60 * 60, gt=0)
    captcha_ttl_seconds: int = Field(default=300, gt=0)
    captcha_ticket_ttl_seconds: int = Field(default=300, gt=0)
    captcha_tolerance: int = Field(default=5, ge=0)
    captcha_required: bool = False
    admin_role_code: str = "ADMIN"
    kv_backend: str = "memory"          # memory | redis
    redis_url: str = "redis://localhost:6379/0"
    kv_sweep_interval_seconds: int = Field(default=60, gt=0)
    legacy_password_salt: str = DEFAULT_LEGACY_SALT

    @classmethod
    def from_env(cls) -> "AuthSettings":
        return cls(
            session_ttl_seconds=_int_env("SESSION_TTL_SECONDS", 604800),
            captcha_ttl_seconds=_int_env("CAPTCHA_TTL_SECONDS", 300),
            captcha_ticket_ttl_seconds=_int_env("CAPTCHA_TICKET_TTL_SECONDS", 300),
            captcha_tolerance=_int_env("CAPTCHA_TOLERANCE", 5),
            captcha_required=_bool_env("AUTH_CAPTCHA_REQUIRED", False),
            admin_role_code=os.getenv("ADMIN_ROLE_CODE") or "ADMIN",
            kv_backend=(os.getenv("KV_BACKEND") or "memory").lower(),
            redis_url=os.getenv("REDIS_URL") or "redis://localhost:6379/0",
            kv_sweep_interval_seconds=_int_env("KV_SWEEP_INTERVAL_SECONDS", 60),
            legacy_password_salt=os.getenv("LEGACY_PASSWORD_SALT") or DEFAULT_LEGACY_SALT,
        )
