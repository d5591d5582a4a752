# authcore/core/errors.py
"""
访问控制核心的业务异常。

每个异常都带稳定的 (error, message) 以及对应的 HTTP 状态码，
由 authcore.main 里的异常处理器统一转换成 {code, message, data, error} 信封。
存储不可用等意外错误不在此列，按通用 500 处理。
"""


class AuthCoreError(Exception):
    status_code = 500
    error = "INTERNAL_ERROR"
    default_message = "Internal server error"

    def __init__(self, message: str = ""):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AuthCoreError):
    status_code = 400
    error = "VALIDATION_ERROR"
    default_message = "Invalid request"


class AuthFailed(AuthCoreError):
    # 不区分“用户不存在”与“口令错误”
    status_code = 401
    error = "AUTH_FAILED"
    default_message = "Invalid username or password"


class Unauthenticated(AuthCoreError):
    status_code = 401
    error = "UNAUTHENTICATED"
    default_message = "Not authenticated or session expired"


class Forbidden(AuthCoreError):
    status_code = 403
    error = "FORBIDDEN"
    default_message = "Insufficient role"


class NotFound(AuthCoreError):
    status_code = 404
    error = "NOT_FOUND"
    default_message = "Resource not found"


class CodeConflict(AuthCoreError):
    status_code = 409
    error = "CODE_CONFLICT"
    default_message = "Code already exists"


class CaptchaExpired(AuthCoreError):
    status_code = 400
    error = "CAPTCHA_EXPIRED"
    default_message = "expired"


class CaptchaMismatch(AuthCoreError):
    status_code = 400
    error = "CAPTCHA_MISMATCH"
    default_message = "mismatch"


class TicketInvalid(AuthCoreError):
    status_code = 400
    error = "TICKET_INVALID"
    default_message = "Captcha ticket is missing, expired or already used"
