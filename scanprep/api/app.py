"""FastAPI application for the document preprocessing service.

Provides REST endpoints for preprocessing an uploaded image, browsing
processing history, and health checks.
"""

from typing import Annotated

from fastapi import FastAPI, File, HTTPException, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from scanprep.history.store import HistoryStore, record_run
from scanprep.preprocessing.errors import ConfigError, DecodeError, EncodeError
from scanprep.preprocessing.pipeline import PreprocessingPipeline
from scanprep.preprocessing.raster import supported_mime_types
from scanprep.utils.config import AppConfig, build_filter_config, load_config
from scanprep.utils.logger import get_logger

from .schemas import (
    ErrorResponse,
    HealthResponse,
    HistoryItemResponse,
    HistoryResponse,
)

logger = get_logger(__name__)

VERSION = "1.0.0"

app = FastAPI(
    title="Document Preprocessing API",
    description="Enhance scanned document images before OCR submission",
    version=VERSION,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _get_config() -> AppConfig:
    """Load the application configuration."""
    return load_config()


def _get_history(config: AppConfig) -> HistoryStore | None:
    """Return the history store, or ``None`` when history is disabled."""
    if not config.history.enabled:
        return None
    return HistoryStore.from_config(config.history)


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Return system health status."""
    return HealthResponse(
        status="healthy",
        version=VERSION,
        supported_formats=supported_mime_types(),
    )


@app.post(
    "/preprocess",
    response_class=Response,
    responses={
        400: {"model": ErrorResponse},
        415: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
async def preprocess_image(
    file: Annotated[UploadFile, File(...)],
    brightness: Annotated[int | None, Query()] = None,
    contrast: Annotated[int | None, Query()] = None,
    grayscale: Annotated[bool | None, Query()] = None,
    sharpen: Annotated[bool | None, Query()] = None,
    auto_rotate: Annotated[bool | None, Query()] = None,
    deskew: Annotated[bool | None, Query()] = None,
) -> Response:
    """Preprocess an uploaded image and return it in the same format.

    Filter options left unset fall back to the configured defaults.

    Args:
        file: Uploaded image (PNG, JPEG, WebP, BMP, or TIFF).
        brightness: Brightness offset in ``[-50, 50]``.
        contrast: Contrast adjustment in ``[-50, 50]``.
        grayscale: Whether to convert to grayscale.
        sharpen: Whether to apply the sharpening kernel.
        auto_rotate: Orientation correction flag (not implemented).
        deskew: Skew correction flag (not implemented).

    Returns:
        The processed image bytes with dimension and metric headers.
    """
    config = _get_config()
    options = {
        "brightness": brightness,
        "contrast": contrast,
        "grayscale": grayscale,
        "sharpen": sharpen,
        "auto_rotate": auto_rotate,
        "deskew": deskew,
    }
    mime_type = file.content_type
    if mime_type == "application/octet-stream":
        mime_type = None

    try:
        filters = build_filter_config(options, base=config.preprocessing)
        pipeline = PreprocessingPipeline(filters, config.output)
        content = await file.read()
        artifact = pipeline.process(content, mime_type)
    except ConfigError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except DecodeError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except EncodeError as exc:
        raise HTTPException(status_code=415, detail=str(exc)) from exc

    filename = file.filename or "document"
    record_run(_get_history(config), artifact, filename, pipeline.config)

    headers = {
        "X-Image-Width": str(artifact.width),
        "X-Image-Height": str(artifact.height),
    }
    if artifact.metrics is not None:
        headers["X-Sharpness-After"] = f"{artifact.metrics.sharpness_after:.3f}"
        headers["X-Contrast-After"] = f"{artifact.metrics.contrast_after:.3f}"

    return Response(
        content=artifact.data, media_type=artifact.mime_type, headers=headers
    )


@app.get("/history", response_model=HistoryResponse)
async def list_history(
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> HistoryResponse:
    """List recent processing history records."""
    history = _get_history(_get_config())
    if history is None:
        return HistoryResponse(items=[])
    return HistoryResponse(
        items=[
            HistoryItemResponse(
                id=r.get("id", ""),
                created_date=r.get("created_date", ""),
                filename=r.get("filename", ""),
                mime_type=r.get("mime_type", ""),
                width=r.get("width", 0),
                height=r.get("height", 0),
                has_preview="file_data_url" in r,
            )
            for r in history.records(limit)
        ]
    )
