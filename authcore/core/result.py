# authcore/core/result.py
"""统一响应信封：{"code", "message", "data"}；错误额外带 "error"（稳定的错误键）。"""
from typing import Any, Optional

from authcore.core.errors import AuthCoreError


def ok(data: Any = None, message: str = "success") -> dict:
    return {"code": 200, "message": message, "data": data}


def fail(code: int, message: str, error: Optional[str] = None) -> dict:
    body = {"code": code, "message": message, "data": None}
    if error:
        body["error"] = error
    return body


def from_error(err: AuthCoreError) -> dict:
    return fail(err.status_code, err.message, err.error)
