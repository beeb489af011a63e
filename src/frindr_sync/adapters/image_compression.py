"""JPEG compression for meal photos before upload."""

import io
import math

from PIL import Image, UnidentifiedImageError

START_QUALITY = 80
MIN_QUALITY = 10
QUALITY_STEP = 10
RESIZED_QUALITY = 70


def compress_jpeg(data: bytes, max_size_kb: int) -> bytes:
    """Re-encode an image as JPEG under ``max_size_kb`` where possible.

    Bytes that are not a decodable image are returned unchanged. Quality is
    lowered step by step first; if that is not enough the image is scaled
    down by the square root of the remaining size ratio.
    """
    limit = max_size_kb * 1024
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            rgb_img = _to_rgb(img)
    except (UnidentifiedImageError, OSError):
        return data

    quality = START_QUALITY
    compressed = _encode(rgb_img, quality)
    while len(compressed) > limit and quality > MIN_QUALITY:
        quality -= QUALITY_STEP
        compressed = _encode(rgb_img, quality)

    if len(compressed) > limit:
        scale = math.sqrt(limit / len(compressed))
        size = (
            max(1, int(rgb_img.width * scale)),
            max(1, int(rgb_img.height * scale)),
        )
        resized = rgb_img.resize(size, Image.Resampling.LANCZOS)
        compressed = _encode(resized, RESIZED_QUALITY)
    return compressed


def _to_rgb(img: Image.Image) -> Image.Image:
    """Flatten transparency onto white, as JPEG has no alpha channel."""
    if img.mode in ("RGBA", "LA", "P"):
        if img.mode == "P":
            img = img.convert("RGBA")
        background = Image.new("RGB", img.size, (255, 255, 255))
        background.paste(img, mask=img.split()[-1])
        return background
    if img.mode != "RGB":
        return img.convert("RGB")
    return img.copy()


def _encode(img: Image.Image, quality: int) -> bytes:
    output = io.BytesIO()
    img.save(output, format="JPEG", quality=quality, optimize=True)
    return output.getvalue()
