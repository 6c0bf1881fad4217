"""Image helpers shared by the pipeline stages. No I/O, no shared state."""

import io

import numpy as np
from PIL import Image, ImageDraw, ImageFont, ImageOps

from .models import Codec, SourceImage

EXIF_ORIENTATION_TAG = 0x0112


def open_image(data: bytes) -> Image.Image:
    """Open image bytes lazily; pixel data is decoded on first access."""
    return Image.open(io.BytesIO(data))


def read_orientation(img: Image.Image) -> int:
    """Return the EXIF orientation tag, 1 when absent or malformed."""
    try:
        orientation = img.getexif().get(EXIF_ORIENTATION_TAG, 1)
    except (OSError, ValueError, SyntaxError):
        return 1
    return orientation if isinstance(orientation, int) and 1 <= orientation <= 8 else 1


def read_source_image(data: bytes) -> SourceImage:
    """Build a SourceImage from bytes that already passed validation."""
    img = open_image(data)
    return SourceImage(
        data=data,
        mime_type=Image.MIME.get(img.format or "", "application/octet-stream"),
        width=img.width,
        height=img.height,
        orientation=read_orientation(img),
    )


def intensity_stddev(img: Image.Image) -> float:
    """
    Population standard deviation of greyscale intensity.

    A cheap sharpness proxy: flat or smeared photos have little spread
    in pixel intensity.
    """
    grey = np.asarray(img.convert("L"), dtype=np.float64)
    return float(grey.std())


def flatten_to_rgb(img: Image.Image, background=(255, 255, 255)) -> Image.Image:
    """Convert to RGB, compositing any transparency onto a solid background."""
    has_alpha = img.mode in ("RGBA", "LA", "PA") or (
        img.mode == "P" and "transparency" in img.info
    )
    if not has_alpha:
        return img.convert("RGB")

    rgba = img.convert("RGBA")
    canvas = Image.new("RGB", rgba.size, background)
    canvas.paste(rgba, mask=rgba.getchannel("A"))
    return canvas


def cover_crop(img: Image.Image, width: int, height: int) -> Image.Image:
    """
    Resize to fill the target box exactly, cropping overflow around the centre.

    Aspect ratio is preserved and the output is never letterboxed, so the
    result always measures exactly ``width`` x ``height``.
    """
    return ImageOps.fit(
        img,
        (width, height),
        method=Image.Resampling.LANCZOS,
        centering=(0.5, 0.5),
    )


def encode_image(img: Image.Image, codec: Codec, quality: int) -> bytes:
    """Encode an RGB image in the given codec."""
    output = io.BytesIO()
    if codec is Codec.WEBP:
        img.save(output, format=codec.pil_format, quality=quality, method=4)
    else:
        img.save(
            output,
            format=codec.pil_format,
            quality=quality,
            optimize=True,
            progressive=False,
        )
    return output.getvalue()


def draw_watermark(img: Image.Image, text: str) -> Image.Image:
    """Draw semi-transparent text in the bottom-right corner."""
    base = img.convert("RGBA")
    overlay = Image.new("RGBA", base.size, (255, 255, 255, 0))
    draw = ImageDraw.Draw(overlay)
    font = ImageFont.load_default()

    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    margin = max(4, min(base.size) // 50)
    position = (
        base.width - (right - left) - margin,
        base.height - (bottom - top) - margin,
    )
    draw.text(position, text, font=font, fill=(255, 255, 255, 128))
    return Image.alpha_composite(base, overlay).convert("RGB")


def build_asset_key(folder: str, size_name: str, public_id: str, codec: Codec) -> str:
    """Remote key of one variant: ``{folder}/{size}/{public_id}.{ext}``."""
    prefix = folder.strip("/")
    key = f"{size_name}/{public_id}.{codec.extension}"
    return f"{prefix}/{key}" if prefix else key
