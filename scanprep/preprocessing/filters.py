"""Pixel-level tone and sharpening filters.

Every filter takes a :class:`RasterBuffer` and returns a new one with the
same dimensions; the input buffer is never modified. Only the R, G and B
channels are touched, alpha is carried over unchanged.

Fractional results are rounded half-to-even (``numpy.rint``) and then
clamped to ``[0, 255]``.
"""

import math

import cv2
import numpy as np

from scanprep.utils.logger import get_logger

from .errors import ConfigError
from .raster import RasterBuffer

logger = get_logger(__name__)

LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114], dtype=np.float64)

SHARPEN_KERNEL = np.array(
    [
        [0, -1, 0],
        [-1, 5, -1],
        [0, -1, 0],
    ],
    dtype=np.float32,
)


def _to_channel(values: np.ndarray) -> np.ndarray:
    """Round half-to-even and clamp to the 8-bit channel range."""
    return np.clip(np.rint(values), 0, 255).astype(np.uint8)


def _with_rgb(buffer: RasterBuffer, rgb: np.ndarray) -> RasterBuffer:
    pixels = buffer.pixels.copy()
    pixels[..., :3] = rgb
    return RasterBuffer(pixels=pixels, mime_type=buffer.mime_type)


def to_grayscale(buffer: RasterBuffer) -> RasterBuffer:
    """Collapse R, G and B to their luminance.

    Uses ``L = 0.299 R + 0.587 G + 0.114 B``. Idempotent.

    Args:
        buffer: Source buffer.

    Returns:
        Buffer with ``L`` written to all three color channels.
    """
    rgb = buffer.pixels[..., :3].astype(np.float64)
    luma = _to_channel(rgb @ LUMA_WEIGHTS)
    logger.debug("Applied grayscale conversion")
    return _with_rgb(buffer, luma[..., np.newaxis])


def adjust_brightness(buffer: RasterBuffer, delta: int) -> RasterBuffer:
    """Add a constant offset to every color channel.

    Clamping makes this lossy at the boundaries: a shift of ``+d``
    followed by ``-d`` does not restore saturated pixels.

    Args:
        buffer: Source buffer.
        delta: Offset added to R, G and B.

    Returns:
        Brightness-adjusted buffer.
    """
    if delta == 0:
        return buffer.copy()
    rgb = buffer.pixels[..., :3].astype(np.int32) + int(delta)
    logger.debug("Applied brightness delta=%d", delta)
    return _with_rgb(buffer, np.clip(rgb, 0, 255).astype(np.uint8))


def contrast_factor(value: float) -> float:
    """Return the contrast stretch factor for ``value``.

    Raises:
        ConfigError: If the factor is undefined (``value == 259``) or
            ``value`` is not finite.
    """
    if not math.isfinite(value):
        raise ConfigError(f"Contrast value must be finite, got {value}")
    if value == 259:
        raise ConfigError("Contrast value 259 yields an undefined scale factor")
    return (259 * (value + 255)) / (255 * (259 - value))


def adjust_contrast(buffer: RasterBuffer, value: float) -> RasterBuffer:
    """Stretch color channels about the midpoint 128.

    ``value`` itself is not clamped; callers validating a
    :class:`~scanprep.utils.config.FilterConfig` get the ``[-50, 50]``
    bound from the config model.

    Args:
        buffer: Source buffer.
        value: Contrast adjustment, ``0`` being the identity.

    Returns:
        Contrast-adjusted buffer.

    Raises:
        ConfigError: If ``value`` produces a degenerate scale factor.
    """
    factor = contrast_factor(value)
    if value == 0:
        return buffer.copy()
    rgb = buffer.pixels[..., :3].astype(np.float64)
    stretched = _to_channel(factor * (rgb - 128.0) + 128.0)
    logger.debug("Applied contrast value=%s (factor=%.4f)", value, factor)
    return _with_rgb(buffer, stretched)


def sharpen(buffer: RasterBuffer) -> RasterBuffer:
    """Apply the 3x3 sharpening kernel to the image interior.

    The kernel is evaluated against a snapshot of the input, and the
    result is written into a separate buffer. The one-pixel border is
    copied through unchanged; images smaller than 3x3 have no interior
    and are returned as a copy.

    Args:
        buffer: Source buffer.

    Returns:
        Sharpened buffer.
    """
    result = buffer.copy()
    if buffer.width < 3 or buffer.height < 3:
        logger.debug("Image too small to sharpen, border only")
        return result

    source = buffer.pixels[..., :3].astype(np.float32)
    filtered = cv2.filter2D(source, cv2.CV_32F, SHARPEN_KERNEL)
    result.pixels[1:-1, 1:-1, :3] = np.clip(filtered[1:-1, 1:-1], 0, 255).astype(
        np.uint8
    )
    logger.debug("Applied sharpen kernel")
    return result
