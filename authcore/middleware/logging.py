"""
模块职责：请求级日志中间件。
- 沿用上游传入的 x-request-id，没有就生成一个，并放到 request.state.request_id；
- 记录 request_start 与 request_end（方法、路径、状态码、耗时）；/health 不打点；
- 未处理异常输出 request_error 后继续抛出，由 main 里的兜底处理器转成 500 信封。
- 不记录 Authorization 头与请求体（含口令 / token）。
"""
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from authcore.infra.logger import emit, emit_error

QUIET_PATHS = {"/health"}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        rid = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = rid
        path = str(request.url.path)
        start = time.perf_counter()
        if path not in QUIET_PATHS:
            emit("request_start", level="DEBUG", request_id=rid, method=request.method, path=path)
        try:
            response = await call_next(request)
        except Exception as e:
            emit_error(
                "request_error",
                request_id=rid, method=request.method, path=path, error=repr(e),
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )
            raise
        if path not in QUIET_PATHS:
            emit(
                "request_end",
                level="WARNING" if response.status_code >= 400 else "INFO",
                request_id=rid, method=request.method, path=path,
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )
        response.headers["x-request-id"] = rid
        return response
