"""
模块职责：统一日志配置与结构化输出。
- configure_logging(): 根据环境变量设置日志等级与落盘策略，uvicorn 日志合流。
- emit(event, **kwargs): 输出结构化日志（dict -> 一行 JSON），方便检索。
- emit_error(event, **kwargs): 同上，level=ERROR。

约定：事件字段里不出现明文口令、会话 token、验证码答案（targetX）；_REDACTED_FIELDS 兜底打码。
"""
import json
import logging
import os
import pathlib
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler


LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_TO_FILE = os.getenv("LOG_TO_FILE", "true").lower() == "true"
LOG_DIR = os.getenv("LOG_DIR", "logs")
LOG_FILE = os.getenv("LOG_FILE", "authcore.log")
LOG_ROTATE_WHEN = os.getenv("LOG_ROTATE_WHEN", "midnight")
LOG_BACKUP_COUNT = int(os.getenv("LOG_BACKUP_COUNT", "7"))

_configured = False


def configure_logging():
    global _configured
    if _configured:
        return

    level = getattr(logging, LEVEL, logging.INFO)
    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(logging.Formatter(
        "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    ))
    root.addHandler(console)

    if LOG_TO_FILE:
        pathlib.Path(LOG_DIR).mkdir(parents=True, exist_ok=True)
        fileh = TimedRotatingFileHandler(
            os.path.join(LOG_DIR, LOG_FILE),
            when=LOG_ROTATE_WHEN, backupCount=LOG_BACKUP_COUNT, encoding="utf-8",
        )
        fileh.setLevel(level)
        # 文件里只写 message（纯 JSON 一行）
        fileh.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(fileh)

    root.setLevel(level)

    # 合流 uvicorn 日志
    for ln in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        lg = logging.getLogger(ln)
        lg.handlers = []
        lg.propagate = True

    _configured = True


_app_logger = logging.getLogger("authcore")


def _now_iso():
    # 本地时区 + 毫秒，示例：2025-09-18T17:30:42.123+09:00
    return datetime.now().astimezone().isoformat(timespec="milliseconds")


# 这些字段即使被误传也不落日志
_REDACTED_FIELDS = {"password", "token", "ticket", "captcha_token", "authorization", "target_x"}


def _redact(rec: dict) -> dict:
    return {k: ("***" if k.lower() in _REDACTED_FIELDS and v is not None else v) for k, v in rec.items()}


def _render(rec: dict) -> str:
    try:
        return json.dumps(_redact(rec), ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return str(rec)


def emit(event: str, level: str = "INFO", **kwargs):
    """
    结构化日志：默认 INFO；每条都带时间戳 ts（本地时区）。
    用法：emit("auth_login_success", user_id=1, role="ADMIN")
    """
    rec = {"ts": _now_iso(), "level": level, "event": event, **kwargs}
    _app_logger.log(getattr(logging, level.upper(), logging.INFO), _render(rec))


def emit_error(event: str, **kwargs):
    """
    错误日志（level=ERROR），同样带 ts。
    用法：emit_error("unhandled_error", request_id=..., error=repr(e))
    """
    rec = {"ts": _now_iso(), "level": "ERROR", "event": event, **kwargs}
    _app_logger.error(_render(rec))
