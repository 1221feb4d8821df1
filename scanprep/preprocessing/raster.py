"""Raster buffer decoding and encoding.

Converts encoded image bytes into an RGBA pixel buffer and back, using
the declared MIME type to select the Pillow codec.
"""

import io
from dataclasses import dataclass

import numpy as np
from PIL import Image, UnidentifiedImageError

from scanprep.utils.logger import get_logger

from .errors import DecodeError, EncodeError
from .metrics import QualityMetrics

logger = get_logger(__name__)

MIME_TO_FORMAT: dict[str, str] = {
    "image/png": "PNG",
    "image/jpeg": "JPEG",
    "image/jpg": "JPEG",
    "image/webp": "WEBP",
    "image/bmp": "BMP",
    "image/tiff": "TIFF",
}

FORMAT_TO_MIME: dict[str, str] = {
    "PNG": "image/png",
    "JPEG": "image/jpeg",
    "WEBP": "image/webp",
    "BMP": "image/bmp",
    "TIFF": "image/tiff",
}

_NO_ALPHA_FORMATS = {"JPEG"}
_QUALITY_FORMATS = {"JPEG", "WEBP"}


@dataclass
class RasterBuffer:
    """Decoded RGBA image owned by a single pipeline invocation.

    Attributes:
        pixels: ``uint8`` array of shape ``(height, width, 4)``.
        mime_type: Container type the buffer was decoded from.
    """

    pixels: np.ndarray
    mime_type: str = "image/png"

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    def copy(self) -> "RasterBuffer":
        return RasterBuffer(pixels=self.pixels.copy(), mime_type=self.mime_type)


@dataclass(frozen=True)
class OutputArtifact:
    """Encoded result of a pipeline run."""

    data: bytes
    mime_type: str
    width: int
    height: int
    metrics: QualityMetrics | None = None


def supported_mime_types() -> list[str]:
    """Return the MIME types accepted by :func:`decode` and :func:`encode`."""
    return sorted(MIME_TO_FORMAT)


def _normalize_mime(mime_type: str) -> str:
    return mime_type.split(";", 1)[0].strip().lower()


def decode(data: bytes, mime_type: str | None = None) -> RasterBuffer:
    """Decode encoded image bytes into an RGBA raster buffer.

    Args:
        data: Encoded image bytes. Never modified.
        mime_type: Declared container type used to pick the decoder.
            If ``None``, the container is detected from the bytes.

    Returns:
        A new raster buffer with the decoded pixels.

    Raises:
        DecodeError: If the input is empty, the declared type is
            unsupported, the bytes cannot be decoded, or the image has
            a zero dimension or exceeds Pillow's pixel limit.
    """
    if not data:
        raise DecodeError("Input image is empty")

    formats: list[str] | None = None
    if mime_type is not None:
        mime_type = _normalize_mime(mime_type)
        if mime_type not in MIME_TO_FORMAT:
            raise DecodeError(f"Unsupported input container: {mime_type}")
        formats = [MIME_TO_FORMAT[mime_type]]

    try:
        with Image.open(io.BytesIO(bytes(data)), formats=formats) as img:
            img.load()
            detected = img.format
            rgba = img.convert("RGBA")
    except Image.DecompressionBombError as exc:
        raise DecodeError(f"Image too large to decode: {exc}") from exc
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise DecodeError(f"Could not decode image: {exc}") from exc

    if mime_type is None:
        if detected not in FORMAT_TO_MIME:
            raise DecodeError(f"Unsupported input container: {detected}")
        mime_type = FORMAT_TO_MIME[detected]

    if rgba.width == 0 or rgba.height == 0:
        raise DecodeError(f"Degenerate image dimensions: {rgba.width}x{rgba.height}")

    pixels = np.array(rgba, dtype=np.uint8)
    logger.debug(
        "Decoded %s image (%dx%d)", mime_type, rgba.width, rgba.height
    )
    return RasterBuffer(pixels=pixels, mime_type=mime_type)


def encode(
    buffer: RasterBuffer,
    mime_type: str | None = None,
    quality: int = 90,
    metrics: QualityMetrics | None = None,
) -> OutputArtifact:
    """Encode a raster buffer into an output artifact.

    Args:
        buffer: Buffer to encode.
        mime_type: Target container. Defaults to the buffer's own type.
        quality: Quality setting for lossy containers (JPEG, WebP).
        metrics: Optional quality metrics to attach to the artifact.

    Returns:
        Immutable encoded artifact.

    Raises:
        EncodeError: If the container is unsupported or encoding fails.
    """
    target = _normalize_mime(mime_type or buffer.mime_type)
    fmt = MIME_TO_FORMAT.get(target)
    if fmt is None:
        raise EncodeError(f"Unsupported output container: {target}")

    img = Image.fromarray(np.ascontiguousarray(buffer.pixels))
    if fmt in _NO_ALPHA_FORMATS:
        img = img.convert("RGB")

    save_kwargs: dict[str, object] = {}
    if fmt in _QUALITY_FORMATS:
        save_kwargs["quality"] = quality

    out = io.BytesIO()
    try:
        img.save(out, format=fmt, **save_kwargs)
    except (OSError, ValueError, KeyError) as exc:
        raise EncodeError(f"Could not encode {target}: {exc}") from exc

    logger.debug("Encoded %s image (%d bytes)", target, out.tell())
    return OutputArtifact(
        data=out.getvalue(),
        mime_type=target,
        width=buffer.width,
        height=buffer.height,
        metrics=metrics,
    )
