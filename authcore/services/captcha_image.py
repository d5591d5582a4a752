"""
模块职能：
- 滑块拼图的图片生成（Pillow）：随机渐变背景 + 干扰线 + 噪点，
  在目标位置抠出滑块，并在背景对应位置画半透明缺口。
- 只负责像素，不关心存储与校验；位置由调用方给定。

主要函数：
- render_puzzle(target_x, target_y, geometry, rng) -> (background_png, slider_png)
- to_data_uri(png_bytes)
"""
import base64
import io
import random
from typing import NamedTuple, Optional, Tuple

from PIL import Image, ImageDraw

NOISE_LINES = 20
NOISE_DOTS = 100


class PuzzleGeometry(NamedTuple):
    width: int = 300
    height: int = 150
    slider_width: int = 50
    slider_height: int = 50
    margin_x: int = 10
    margin_y: int = 5

    def x_range(self) -> Tuple[int, int]:
        return self.margin_x, self.width - self.slider_width - self.margin_x

    def y_range(self) -> Tuple[int, int]:
        return self.margin_y, self.height - self.slider_height - self.margin_y


def _color(rng: random.Random) -> Tuple[int, int, int]:
    return rng.randrange(255), rng.randrange(255), rng.randrange(255)


def _background(g: PuzzleGeometry, rng: random.Random) -> Image.Image:
    start, end = _color(rng), _color(rng)
    img = Image.new("RGB", (g.width, g.height))
    draw = ImageDraw.Draw(img)
    # 对角线方向的渐变，按列近似
    for x in range(g.width):
        t = x / max(1, g.width - 1)
        draw.line([(x, 0), (x, g.height)],
                  fill=tuple(int(s + (e - s) * t) for s, e in zip(start, end)))
    for _ in range(NOISE_LINES):
        draw.line([(rng.randrange(g.width), rng.randrange(g.height)),
                   (rng.randrange(g.width), rng.randrange(g.height))], fill=_color(rng))
    for _ in range(NOISE_DOTS):
        x, y = rng.randrange(g.width), rng.randrange(g.height)
        draw.ellipse([x, y, x + 2, y + 2], outline=_color(rng))
    return img


def _png(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def render_puzzle(target_x: int, target_y: int, geometry: PuzzleGeometry = PuzzleGeometry(),
                  rng: Optional[random.Random] = None) -> Tuple[bytes, bytes]:
    rng = rng or random.Random()
    g = geometry
    bg = _background(g, rng)
    box = (target_x, target_y, target_x + g.slider_width, target_y + g.slider_height)

    slider = Image.new("RGBA", (g.slider_width, g.slider_height), (0, 0, 0, 0))
    slider.paste(bg.crop(box), (0, 0))
    ImageDraw.Draw(slider).rectangle(
        [0, 0, g.slider_width - 1, g.slider_height - 1], outline=(211, 211, 211, 255))

    # 缺口：半透明黑覆盖
    hole = Image.new("RGBA", bg.size, (0, 0, 0, 0))
    ImageDraw.Draw(hole).rectangle([box[0], box[1], box[2] - 1, box[3] - 1], fill=(0, 0, 0, 100))
    bg = Image.alpha_composite(bg.convert("RGBA"), hole).convert("RGB")

    return _png(bg), _png(slider)


def to_data_uri(png: bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(png).decode("ascii")
