# authcore/core/security.py
""""封装口令哈希/校验与会话 token 生成。

口令有两种存储格式：
- 旧格式：md5_hex(password + 固定盐)，32 位十六进制；已入库的账号依赖它。
  这是已知弱点（固定盐、单轮摘要），保留只为兼容比较。
- 新格式：passlib CryptContext（pbkdf2_sha256，逐条随机盐、多轮）。
verify_password() 自动识别两种格式；hash_password() 只产出新格式。
把旧格式换掉会让已存口令全部失效，需要在下次登录时重新哈希（本模块不自动做）。"""

import hashlib
import hmac
import re
import secrets

from passlib.context import CryptContext

from authcore.core.config import DEFAULT_LEGACY_SALT

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

_LEGACY_RE = re.compile(r"^[0-9a-f]{32}$")


def legacy_digest(plain: str, salt: str = DEFAULT_LEGACY_SALT) -> str:
    return hashlib.md5((plain + salt).encode("utf-8")).hexdigest()


def is_legacy_hash(stored: str) -> bool:
    return bool(stored) and _LEGACY_RE.match(stored) is not None


def hash_password(plain: str) -> str:
    return pwd_context.hash(plain)


def verify_password(plain: str, stored: str, salt: str = DEFAULT_LEGACY_SALT) -> bool:
    if not stored:
        return False
    if is_legacy_hash(stored):
        return hmac.compare_digest(legacy_digest(plain, salt), stored)
    if pwd_context.identify(stored) is None:
        return False
    return pwd_context.verify(plain, stored)


def new_session_token() -> str:
    # 256 bit 随机，与用户、时间均无关
    return secrets.token_urlsafe(32)


def new_opaque_id() -> str:
    return secrets.token_urlsafe(18)
