# authcore/api/captcha.py
"""
滑块验证码 API。

- GET  /captcha/generate → {captchaId, backgroundImage, sliderImage, sliderY}
- POST /captcha/verify   {captchaId, sliderX} → {success, token, message}
  失败（过期 / 偏移过大）走 400 信封，message 为 "expired" / "mismatch"。
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from authcore.api.deps.auth import get_captcha
from authcore.core.errors import CaptchaExpired, CaptchaMismatch
from authcore.core.result import ok
from authcore.services.captcha import MSG_EXPIRED, CaptchaChallenge

router = APIRouter(prefix="/captcha", tags=["captcha"])


class VerifyInput(BaseModel):
    captchaId: str = Field(min_length=1)
    sliderX: int


@router.get("/generate")
def generate(captcha: CaptchaChallenge = Depends(get_captcha)):
    p = captcha.generate()
    return ok({
        "captchaId": p.id,
        "backgroundImage": p.background_image,
        "sliderImage": p.slider_image,
        "sliderY": p.slider_y,
    })


@router.post("/verify")
def verify(body: VerifyInput, captcha: CaptchaChallenge = Depends(get_captcha)):
    verdict = captcha.verify(body.captchaId, body.sliderX)
    if not verdict.success:
        if verdict.message == MSG_EXPIRED:
            raise CaptchaExpired(verdict.message)
        raise CaptchaMismatch(verdict.message)
    return ok({"success": True, "token": verdict.ticket, "message": verdict.message})
