from __future__ import annotations

from io import BytesIO

from PIL import Image, ImageColor, UnidentifiedImageError

PNG_COMPRESS_LEVEL = 6
DEFAULT_PLACEHOLDER_SIZE = 64
DEFAULT_PLACEHOLDER_COLOR = "#e2e8f0"


class ImageReencodeError(ValueError):
    """Raised when fetched bytes cannot be decoded as an image."""


def make_placeholder(size: int = DEFAULT_PLACEHOLDER_SIZE, color: str = DEFAULT_PLACEHOLDER_COLOR) -> bytes:
    """Solid-color square PNG used when no real logo is available."""
    rgb = ImageColor.getrgb(color)[:3]
    image = Image.new("RGB", (size, size), rgb)
    buf = BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()


def reencode_png(data: bytes) -> bytes:
    """Decode arbitrary image bytes and return them as PNG.

    Raises ImageReencodeError for empty, corrupt or unsupported input
    (SVG included, Pillow cannot rasterize it) and for images over
    Pillow's decompression-bomb limit.
    """
    if not data:
        raise ImageReencodeError("empty image payload")
    try:
        with Image.open(BytesIO(data)) as img:
            img.load()
            if img.mode not in ("RGB", "RGBA", "L", "LA", "P"):
                img = img.convert("RGBA")
            buf = BytesIO()
            img.save(buf, format="PNG", optimize=False, compress_level=PNG_COMPRESS_LEVEL)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        raise ImageReencodeError(str(exc)) from exc
    return buf.getvalue()


def to_png_or_raw(data: bytes) -> tuple[bytes, bool]:
    """PNG bytes when decodable, otherwise the original bytes.

    Returns (payload, reencoded?).
    """
    try:
        return reencode_png(data), True
    except ImageReencodeError:
        return data, False
