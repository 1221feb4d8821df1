"""Image quality measurements recorded around a pipeline run."""

from dataclasses import dataclass

import cv2
import numpy as np


@dataclass(frozen=True)
class QualityMetrics:
    """Before/after image quality measurements."""

    sharpness_before: float
    sharpness_after: float
    contrast_before: float
    contrast_after: float


def _to_gray(pixels: np.ndarray) -> np.ndarray:
    """Convert an RGBA or RGB pixel array to grayscale.

    Args:
        pixels: Pixel array with 4 (RGBA), 3 (RGB) or no channel axis.

    Returns:
        Grayscale image.
    """
    if pixels.ndim == 3 and pixels.shape[2] == 4:
        return cv2.cvtColor(pixels, cv2.COLOR_RGBA2GRAY)
    if pixels.ndim == 3:
        return cv2.cvtColor(pixels, cv2.COLOR_RGB2GRAY)
    return pixels


def calculate_sharpness(pixels: np.ndarray) -> float:
    """Calculate image sharpness using Laplacian variance.

    Args:
        pixels: Pixel array (RGBA, RGB or grayscale).

    Returns:
        Sharpness score (higher means sharper).
    """
    return float(cv2.Laplacian(_to_gray(pixels), cv2.CV_64F).var())


def calculate_contrast(pixels: np.ndarray) -> float:
    """Calculate image contrast as the standard deviation of pixel intensities.

    Args:
        pixels: Pixel array (RGBA, RGB or grayscale).

    Returns:
        Contrast score (higher means more contrast).
    """
    return float(_to_gray(pixels).std())
