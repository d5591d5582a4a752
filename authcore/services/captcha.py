"""
模块职能：
- 滑块验证码：生成挑战、校验滑动距离、签发 / 核验 / 消费一次性通过凭证（ticket）。

规则：
- 挑战按 id 存 captcha:slide:<id>，值里含 target_x（只在服务端）、target_y；
  返回给客户端的只有 target_y（滑块纵向位置），不暴露横向答案。
- verify() 用 take() 取出挑战：无论成败都只能用一次，防止重放。
- 通过后签发 ticket（captcha:verified:<ticket>），登录时 consume_ticket() 取走，只能用一次。

日志：
- captcha_generated / captcha_verify_expired / captcha_verify_mismatch / captcha_verify_ok
- captcha_ticket_consumed / captcha_ticket_rejected
"""
from __future__ import annotations

import json
import random
import time
import uuid
from typing import Callable, Optional

from pydantic import BaseModel

from authcore.core.security import new_opaque_id
from authcore.infra.kv import KeyValueStore
from authcore.infra.logger import emit
from authcore.services.captcha_image import PuzzleGeometry, render_puzzle, to_data_uri

MSG_EXPIRED = "expired"
MSG_MISMATCH = "mismatch"
MSG_OK = "verified"


class CaptchaPuzzle(BaseModel):
    id: str
    background_image: str
    slider_image: str
    slider_y: int


class CaptchaVerdict(BaseModel):
    success: bool
    message: str
    ticket: Optional[str] = None


def _challenge_key(captcha_id: str) -> str:
    return f"captcha:slide:{captcha_id}"


def _ticket_key(ticket: str) -> str:
    return f"captcha:verified:{ticket}"


class CaptchaChallenge:
    def __init__(self, store: KeyValueStore, *, challenge_ttl: int = 300, ticket_ttl: int = 300,
                 tolerance: int = 5, geometry: PuzzleGeometry = PuzzleGeometry(),
                 clock: Callable[[], float] = time.time, rng: Optional[random.Random] = None):
        self._store = store
        self._challenge_ttl = challenge_ttl
        self._ticket_ttl = ticket_ttl
        self._tolerance = tolerance
        self._geometry = geometry
        self._clock = clock
        # 位置必须不可预测
        self._rng = rng or random.SystemRandom()

    @property
    def tolerance(self) -> int:
        return self._tolerance

    def generate(self) -> CaptchaPuzzle:
        captcha_id = str(uuid.uuid4())
        x_lo, x_hi = self._geometry.x_range()
        y_lo, y_hi = self._geometry.y_range()
        target_x = self._rng.randint(x_lo, x_hi)
        target_y = self._rng.randint(y_lo, y_hi)

        background, slider = render_puzzle(target_x, target_y, self._geometry, self._rng)

        now = self._clock()
        record = {"x": target_x, "y": target_y, "created_at": now,
                  "expires_at": now + self._challenge_ttl}
        self._store.put(_challenge_key(captcha_id), json.dumps(record), self._challenge_ttl)
        emit("captcha_generated", captcha_id=captcha_id)
        return CaptchaPuzzle(id=captcha_id, background_image=to_data_uri(background),
                             slider_image=to_data_uri(slider), slider_y=target_y)

    def verify(self, captcha_id: str, proposed_x: int) -> CaptchaVerdict:
        raw = self._store.take(_challenge_key(captcha_id)) if captcha_id else None
        record = json.loads(raw) if raw else None
        if record is None or self._clock() >= record["expires_at"]:
            emit("captcha_verify_expired", captcha_id=captcha_id)
            return CaptchaVerdict(success=False, message=MSG_EXPIRED)

        diff = abs(int(record["x"]) - int(proposed_x))
        if diff > self._tolerance:
            emit("captcha_verify_mismatch", captcha_id=captcha_id, diff=diff)
            return CaptchaVerdict(success=False, message=MSG_MISMATCH)

        ticket = new_opaque_id()
        self._store.put(_ticket_key(ticket), str(self._clock() + self._ticket_ttl), self._ticket_ttl)
        emit("captcha_verify_ok", captcha_id=captcha_id, diff=diff)
        return CaptchaVerdict(success=True, message=MSG_OK, ticket=ticket)

    def _alive(self, raw: Optional[str]) -> bool:
        return raw is not None and self._clock() < float(raw)

    def validate_ticket(self, ticket: Optional[str]) -> bool:
        if not ticket:
            return False
        return self._alive(self._store.peek(_ticket_key(ticket)))

    def consume_ticket(self, ticket: Optional[str]) -> bool:
        if not ticket:
            return False
        ok = self._alive(self._store.take(_ticket_key(ticket)))
        emit("captcha_ticket_consumed" if ok else "captcha_ticket_rejected")
        return ok
