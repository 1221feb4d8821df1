"""Configurable image preprocessing pipeline for document OCR.

Orchestrates decoding, grayscale conversion, brightness and contrast
adjustment, sharpening, and orientation steps with quality metrics
tracking. Filters always run in the same order, whatever order the
options were supplied in:

    grayscale -> brightness -> contrast -> sharpen -> auto_rotate -> deskew
"""

from collections.abc import Callable, Mapping
from typing import Any

from scanprep.utils.config import FilterConfig, OutputConfig, build_filter_config
from scanprep.utils.logger import get_logger

from .errors import ConfigError
from .filters import adjust_brightness, adjust_contrast, sharpen, to_grayscale
from .metrics import QualityMetrics, calculate_contrast, calculate_sharpness
from .orientation import auto_rotate, deskew
from .raster import OutputArtifact, RasterBuffer, decode, encode

logger = get_logger(__name__)

Step = Callable[[RasterBuffer], RasterBuffer]


def _plan(config: FilterConfig) -> list[tuple[str, Step]]:
    """Return the enabled steps for ``config`` in canonical order."""
    steps: list[tuple[str, Step]] = []
    if config.grayscale:
        steps.append(("grayscale", to_grayscale))
    if config.brightness != 0:
        steps.append(
            ("brightness", lambda b: adjust_brightness(b, config.brightness))
        )
    if config.contrast != 0:
        steps.append(("contrast", lambda b: adjust_contrast(b, config.contrast)))
    if config.sharpen:
        steps.append(("sharpen", sharpen))
    if config.auto_rotate:
        steps.append(("auto_rotate", auto_rotate))
    if config.deskew:
        steps.append(("deskew", deskew))
    return steps


class PreprocessingPipeline:
    """Decode, enhance, and re-encode document images.

    The configuration is validated once here; each call to
    :meth:`process` works on its own decoded buffer, so one pipeline may
    serve concurrent callers.

    Args:
        config: Filter options, as a validated config or a raw mapping.
        output: Encoding options for the output artifact.

    Raises:
        ConfigError: If the configuration is invalid, or requests an
            unimplemented orientation step while ``strict_orientation``
            is set.
    """

    def __init__(
        self,
        config: FilterConfig | Mapping[str, Any] | None = None,
        output: OutputConfig | None = None,
    ) -> None:
        if not isinstance(config, FilterConfig):
            config = build_filter_config(config)
        if config.strict_orientation and (config.auto_rotate or config.deskew):
            raise ConfigError(
                "auto_rotate and deskew are not supported in strict orientation mode"
            )
        self.config = config
        self.output = output or OutputConfig()
        self.steps = _plan(config)

    @property
    def step_names(self) -> list[str]:
        return [name for name, _ in self.steps]

    def apply(self, buffer: RasterBuffer) -> RasterBuffer:
        """Run the enabled filters over a decoded buffer.

        Args:
            buffer: Decoded source buffer. Left unmodified.

        Returns:
            The filtered buffer, with the same dimensions as the input.
        """
        result = buffer
        for _, step in self.steps:
            result = step(result)
        return result

    def process(self, data: bytes, mime_type: str | None = None) -> OutputArtifact:
        """Run the full preprocessing pipeline on encoded image bytes.

        Args:
            data: Encoded input image. Never modified.
            mime_type: Declared container type of ``data``. Detected
                from the bytes when ``None``.

        Returns:
            The re-encoded image in the input's container format, with
            before/after quality metrics attached.

        Raises:
            DecodeError: If the input cannot be decoded.
            ConfigError: If a filter parameter is degenerate.
            EncodeError: If the output cannot be encoded.
        """
        buffer = decode(data, mime_type)
        sharpness_before = calculate_sharpness(buffer.pixels)
        contrast_before = calculate_contrast(buffer.pixels)

        result = self.apply(buffer)

        metrics = QualityMetrics(
            sharpness_before=sharpness_before,
            sharpness_after=calculate_sharpness(result.pixels),
            contrast_before=contrast_before,
            contrast_after=calculate_contrast(result.pixels),
        )
        artifact = encode(
            result, buffer.mime_type, quality=self.output.quality, metrics=metrics
        )

        logger.info(
            "Preprocessing complete (%s): sharpness %.1f->%.1f, contrast %.1f->%.1f",
            ", ".join(self.step_names) or "no filters",
            metrics.sharpness_before,
            metrics.sharpness_after,
            metrics.contrast_before,
            metrics.contrast_after,
        )
        return artifact


def process_image(
    data: bytes,
    config: FilterConfig | Mapping[str, Any] | None = None,
    mime_type: str | None = None,
    output: OutputConfig | None = None,
) -> OutputArtifact:
    """Preprocess a single image with a one-off pipeline.

    Args:
        data: Encoded input image.
        config: Filter options.
        mime_type: Declared container type of ``data``.
        output: Encoding options.

    Returns:
        The processed output artifact.
    """
    return PreprocessingPipeline(config, output).process(data, mime_type)
