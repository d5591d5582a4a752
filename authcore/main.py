"""
应用入口：
- 加载 .env（先 .env.example 作默认，再用 .env 覆盖）
- lifespan 启动阶段：配置日志 → 读取 AuthSettings → 初始化数据库 → 构造键值存储与各服务
  （SessionAuthority / CaptchaChallenge / AuthGateway）挂到 app.state；内存存储额外启动过期清理任务
- lifespan 关闭阶段：停止清理任务、关闭键值存储
- 异常处理：业务异常 → 信封；请求体校验失败 → 400 信封；其余 → 500 信封（只记日志不回传细节）
"""
from pathlib import Path

from dotenv import load_dotenv

# 1) 先加载 .env，务必在导入 logger / db 之前
ROOT = Path(__file__).resolve().parents[1]
ENV = ROOT / ".env"
ENV_EXAMPLE = ROOT / ".env.example"
if ENV_EXAMPLE.exists():
    load_dotenv(ENV_EXAMPLE, override=False)
if ENV.exists():
    load_dotenv(ENV, override=True)

# 2) 正常导入
import asyncio
from contextlib import asynccontextmanager, suppress
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from authcore.api import auth as auth_api
from authcore.api import captcha as captcha_api
from authcore.api import permissions as permissions_api
from authcore.api import role_permissions as role_permissions_api
from authcore.core.config import AuthSettings
from authcore.core.errors import AuthCoreError
from authcore.core.result import fail, from_error
from authcore.infra.db import SessionLocal, init_db
from authcore.infra.kv import KeyValueStore, build_store
from authcore.infra.logger import (
    LOG_BACKUP_COUNT, LOG_DIR, LOG_FILE, LOG_ROTATE_WHEN, LOG_TO_FILE,
    configure_logging, emit, emit_error,
)
from authcore.middleware.logging import RequestLoggingMiddleware
from authcore.services.auth import AuthGateway
from authcore.services.captcha import CaptchaChallenge
from authcore.services.credentials import SqlCredentialStore
from authcore.services.sessions import SessionAuthority


async def _sweep(store: KeyValueStore, interval: int):
    # 低优先级后台清理：只为限制内存增长，正确性靠访问时的惰性过期
    while True:
        await asyncio.sleep(interval)
        store.purge_expired()


async def stop_sweeper(sweeper: Optional[asyncio.Task]):
    if sweeper is None:
        return
    sweeper.cancel()
    with suppress(asyncio.CancelledError):
        await sweeper


def wire_services(app: FastAPI, settings: AuthSettings, store: KeyValueStore):
    app.state.settings = settings
    app.state.store = store
    app.state.sessions = SessionAuthority(store, ttl_seconds=settings.session_ttl_seconds)
    app.state.captcha = CaptchaChallenge(
        store,
        challenge_ttl=settings.captcha_ttl_seconds,
        ticket_ttl=settings.captcha_ticket_ttl_seconds,
        tolerance=settings.captcha_tolerance,
    )
    app.state.gateway = AuthGateway(
        SqlCredentialStore(SessionLocal), app.state.sessions, app.state.captcha, settings,
    )


# 3) lifespan：替代 on_event（startup/shutdown）
@asynccontextmanager
async def lifespan(app: FastAPI):
    # startup
    configure_logging()
    emit(
        "logger_config",
        to_file=LOG_TO_FILE, dir=LOG_DIR, file=LOG_FILE,
        when=LOG_ROTATE_WHEN, backup=LOG_BACKUP_COUNT,
    )
    settings = AuthSettings.from_env()
    init_db()
    emit("db_init_done")
    store = build_store(settings)
    wire_services(app, settings, store)
    sweeper = None
    if store.backend == "memory":
        sweeper = asyncio.create_task(_sweep(store, settings.kv_sweep_interval_seconds))
    emit("app_started", kv_backend=store.backend, session_ttl=settings.session_ttl_seconds,
         captcha_required=settings.captcha_required)
    yield
    # shutdown
    await stop_sweeper(sweeper)
    store.close()
    emit("app_shutdown")


# 4) 创建应用并装配
app = FastAPI(title="authcore: sessions, permissions, slide captcha", lifespan=lifespan)
app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(AuthCoreError)
async def handle_auth_error(request: Request, exc: AuthCoreError):
    return JSONResponse(status_code=exc.status_code, content=from_error(exc))


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError):
    errs = exc.errors()
    first = errs[0] if errs else {}
    where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{where}: {first.get('msg')}" if where else str(first.get("msg", "Invalid request"))
    return JSONResponse(status_code=400, content=fail(400, message, "VALIDATION_ERROR"))


@app.exception_handler(Exception)
async def handle_unexpected(request: Request, exc: Exception):
    emit_error("unhandled_error", request_id=getattr(request.state, "request_id", None),
               path=str(request.url.path), error=repr(exc))
    return JSONResponse(status_code=500, content=fail(500, "Internal server error", "INTERNAL_ERROR"))


@app.get("/health")
def health():
    return {"ok": True}


# 路由
app.include_router(auth_api.router, prefix="/api/v1")
app.include_router(captcha_api.router, prefix="/api/v1")
app.include_router(permissions_api.router, prefix="/api/v1")
app.include_router(role_permissions_api.router, prefix="/api/v1")
