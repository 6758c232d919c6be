from __future__ import annotations

import io
from dataclasses import dataclass

from PIL import Image, ImageFilter, UnidentifiedImageError

from .config_schema import PreprocessConfig
from .errors import ImageDecodeError

_MIDPOINT = 128


@dataclass(frozen=True)
class PreprocessOptions:
    """
    Normalization applied before extraction, in a fixed order:
    contrast, then brightness, then sharpening. None/False skips a step.
    """

    contrast: float | None = None
    brightness: float | None = None
    sharpen: bool = False

    @classmethod
    def from_config(cls, cfg: PreprocessConfig) -> "PreprocessOptions":
        return cls(contrast=cfg.contrast, brightness=cfg.brightness, sharpen=cfg.sharpen)

    @property
    def is_identity(self) -> bool:
        return self.contrast is None and self.brightness is None and not self.sharpen


def _clamp(value: float) -> int:
    return max(0, min(255, int(round(value))))


def _contrast_lut(factor: float) -> list[int]:
    # Linear stretch around the midpoint: p' = c*p - 128*c + 128.
    offset = _MIDPOINT - _MIDPOINT * factor
    return [_clamp(factor * p + offset) for p in range(256)]


def _brightness_lut(factor: float) -> list[int]:
    return [_clamp(factor * p) for p in range(256)]


def decode_image(image_bytes: bytes) -> Image.Image:
    if not image_bytes:
        raise ImageDecodeError("image is empty")
    try:
        img = Image.open(io.BytesIO(image_bytes))
        img.load()
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
        raise ImageDecodeError(f"not a decodable raster image: {e}") from e
    return img


def sniff_mime(image_bytes: bytes) -> str:
    """MIME type of decodable image bytes, e.g. "image/png"."""
    img = decode_image(image_bytes)
    return Image.MIME.get(img.format or "", "image/png")


def _apply_lut(img: Image.Image, lut: list[int]) -> Image.Image:
    return img.point(lut * len(img.getbands()))


def preprocess(image_bytes: bytes, options: PreprocessOptions | None = None) -> bytes:
    """
    Normalize a screenshot for text extraction.

    With no step requested the input bytes are returned as-is once they are
    known to decode. Otherwise the result is re-encoded as PNG.
    """
    opts = options or PreprocessOptions()
    img = decode_image(image_bytes)
    if opts.is_identity:
        return image_bytes

    alpha: Image.Image | None = None
    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        alpha = rgba.getchannel("A")
        work = rgba.convert("RGB")
    elif img.mode in ("L", "RGB"):
        work = img
    else:
        work = img.convert("RGB")

    if opts.contrast is not None:
        work = _apply_lut(work, _contrast_lut(float(opts.contrast)))
    if opts.brightness is not None:
        work = _apply_lut(work, _brightness_lut(float(opts.brightness)))
    if opts.sharpen:
        work = work.filter(ImageFilter.SHARPEN)

    if alpha is not None:
        work = work.convert("RGBA")
        work.putalpha(alpha)

    out = io.BytesIO()
    work.save(out, format="PNG")
    return out.getvalue()
