"""
Image I/O helpers: download, decode, re-encode and size-limited resize
"""
import io
import logging
from typing import Optional

import httpx
import numpy as np
from PIL import Image, ImageOps, ImageStat, UnidentifiedImageError

from .config import OutputFormat, get_config
from .errors import DownloadError, DecodeError
from .models import ImageMetadata, ChannelStatistics

logger = logging.getLogger(__name__)

PIL_FORMATS = {
    OutputFormat.PNG: "PNG",
    OutputFormat.JPEG: "JPEG",
    OutputFormat.WEBP: "WEBP",
}

MIME_TYPES = {
    OutputFormat.PNG: "image/png",
    OutputFormat.JPEG: "image/jpeg",
    OutputFormat.WEBP: "image/webp",
}

EXTENSIONS = {
    OutputFormat.PNG: "png",
    OutputFormat.JPEG: "jpg",
    OutputFormat.WEBP: "webp",
}

MIN_RESIZE_DIMENSION = 64


def mime_type_for(fmt: OutputFormat) -> str:
    return MIME_TYPES[OutputFormat(fmt)]


def extension_for(fmt: OutputFormat) -> str:
    return EXTENSIONS[OutputFormat(fmt)]


def fetch_bytes(url: str, timeout: Optional[float] = None, client: Optional[httpx.Client] = None) -> bytes:
    """
    Download a URL and return its body

    Raises:
        DownloadError: non-2xx status, transport failure or empty body
    """
    if timeout is None:
        timeout = get_config().providers.download_timeout_seconds

    logger.debug(f"⬇️ Fetching {url}")
    try:
        if client is not None:
            response = client.get(url, timeout=timeout)
        else:
            with httpx.Client(timeout=timeout, follow_redirects=True) as http:
                response = http.get(url)
    except httpx.TimeoutException as e:
        raise DownloadError(f"Timed out downloading {url}: {e}", url=url) from e
    except httpx.HTTPError as e:
        raise DownloadError(f"Failed to download {url}: {e}", url=url) from e

    if not response.is_success:
        raise DownloadError(
            f"Failed to download {url}: HTTP {response.status_code}",
            url=url,
            status_code=response.status_code,
        )

    content = response.content
    if not content:
        raise DownloadError(f"Empty response body from {url}", url=url, status_code=response.status_code)

    logger.debug(f"   Downloaded {len(content) / 1024:.1f}KB")
    return content


def load_image(data: bytes) -> Image.Image:
    """Decode bytes into a fully loaded PIL image with EXIF orientation applied"""
    if not data:
        raise DecodeError("Image bytes are empty")
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        preview = data[:20].hex()[:40]
        raise DecodeError(
            f"Could not decode image bytes. Size: {len(data)} bytes. Magic bytes: {preview}"
        ) from e
    source_format = img.format
    img = ImageOps.exif_transpose(img)
    img.format = source_format
    return img


def to_rgb(img: Image.Image) -> Image.Image:
    """Flatten to RGB; transparent areas become white"""
    if img.mode == "RGB":
        return img
    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[-1])
        return background
    return img.convert("RGB")


def to_array(img: Image.Image) -> np.ndarray:
    """PIL image to an RGB uint8 array"""
    return np.asarray(to_rgb(img), dtype=np.uint8)


def decode_metadata(data: bytes) -> ImageMetadata:
    """Read dimensions, format and per-channel statistics"""
    img = load_image(data)
    source_format = img.format or "unknown"
    has_alpha = img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info)

    stat = ImageStat.Stat(to_rgb(img))
    channels = [
        ChannelStatistics(mean=float(mean), std=float(std))
        for mean, std in zip(stat.mean, stat.stddev)
    ]

    return ImageMetadata(
        width=img.width,
        height=img.height,
        format=source_format.lower(),
        channel_statistics=channels,
        size_bytes=len(data),
        has_alpha=has_alpha,
        mode=img.mode,
    )


def to_bytes(img: Image.Image, fmt: OutputFormat, quality_hint: Optional[int] = None) -> bytes:
    """Encode a PIL image; same input always gives the same bytes"""
    fmt = OutputFormat(fmt)
    params = get_config().output
    buffer = io.BytesIO()

    if fmt == OutputFormat.JPEG:
        to_rgb(img).save(
            buffer,
            format="JPEG",
            quality=quality_hint or params.jpeg_quality,
            optimize=True,
            progressive=True,
        )
    elif fmt == OutputFormat.PNG:
        if img.mode not in ("RGB", "RGBA", "L", "LA"):
            img = img.convert("RGBA")
        img.save(buffer, format="PNG", optimize=True, compress_level=params.png_compression)
    else:
        if img.mode not in ("RGB", "RGBA"):
            img = img.convert("RGBA")
        img.save(buffer, format="WEBP", quality=quality_hint or params.webp_quality, method=6)

    return buffer.getvalue()


def reencode(data: bytes, fmt: OutputFormat, quality_hint: Optional[int] = None) -> bytes:
    """Re-encode image bytes to the requested output format"""
    return to_bytes(load_image(data), fmt, quality_hint)


def resize_to_fit(
    data: bytes,
    max_bytes: int,
    max_dimension: int,
    fmt: OutputFormat = OutputFormat.PNG,
) -> bytes:
    """
    Shrink an image until it fits provider upload limits

    The longest side is clamped to max_dimension first, then the image is
    scaled down in 0.75 steps until the encoded size is at most max_bytes.
    """
    img = load_image(data)

    if max(img.size) > max_dimension:
        ratio = max_dimension / max(img.size)
        img = img.resize(
            (max(1, int(img.width * ratio)), max(1, int(img.height * ratio))),
            Image.LANCZOS,
        )

    encoded = to_bytes(img, fmt)
    while len(encoded) > max_bytes:
        new_size = (int(img.width * 0.75), int(img.height * 0.75))
        if min(new_size) < MIN_RESIZE_DIMENSION:
            raise DecodeError(
                f"Image cannot be reduced below {max_bytes} bytes "
                f"(still {len(encoded)} bytes at {img.width}x{img.height})"
            )
        img = img.resize(new_size, Image.LANCZOS)
        encoded = to_bytes(img, fmt)

    logger.debug(f"   Resized for upload: {img.width}x{img.height}, {len(encoded) / 1024:.1f}KB")
    return encoded
