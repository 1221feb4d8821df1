"""Shared test fixtures for the preprocessing test suite."""

import io
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from scanprep.preprocessing.raster import RasterBuffer


@pytest.fixture
def random_buffer() -> RasterBuffer:
    """Create a synthetic noisy RGBA buffer with varying alpha."""
    rng = np.random.default_rng(42)
    pixels = rng.integers(0, 256, size=(40, 60, 4), dtype=np.uint8)
    return RasterBuffer(pixels=pixels)


@pytest.fixture
def document_pixels() -> np.ndarray:
    """Create a synthetic RGBA page with a dark text-like block."""
    pixels = np.full((120, 160, 4), 230, dtype=np.uint8)
    pixels[..., 3] = 255
    pixels[40:80, 30:130, :3] = (40, 60, 80)
    return pixels


@pytest.fixture
def png_bytes(document_pixels: np.ndarray) -> bytes:
    """PNG encoding of the synthetic document page."""
    buf = io.BytesIO()
    Image.fromarray(document_pixels).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def config_dir(project_root: Path) -> Path:
    """Return the configs directory path."""
    return project_root / "configs"
