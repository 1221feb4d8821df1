"""Orientation correction steps.

EXIF-based rotation and skew correction are accepted as options but are
not implemented: both steps return an unchanged copy and log a warning.
"""

from scanprep.utils.logger import get_logger

from .raster import RasterBuffer

logger = get_logger(__name__)


def auto_rotate(buffer: RasterBuffer) -> RasterBuffer:
    """Return the buffer unchanged; EXIF orientation is not applied."""
    logger.warning("auto_rotate requested but not implemented, image left as is")
    return buffer.copy()


def deskew(buffer: RasterBuffer) -> RasterBuffer:
    """Return the buffer unchanged; skew detection is not applied."""
    logger.warning("deskew requested but not implemented, image left as is")
    return buffer.copy()
