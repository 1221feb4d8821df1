"""Pydantic response schemas for the FastAPI endpoints."""

from pydantic import BaseModel


class HealthResponse(BaseModel):
    """Response schema for the health check endpoint."""

    status: str
    version: str
    supported_formats: list[str]


class ErrorResponse(BaseModel):
    """Response schema for a failed preprocessing request."""

    detail: str


class HistoryItemResponse(BaseModel):
    """Summary of a stored history record, without its preview."""

    id: str
    created_date: str
    filename: str
    mime_type: str
    width: int
    height: int
    has_preview: bool


class HistoryResponse(BaseModel):
    """Response schema listing recent history records."""

    items: list[HistoryItemResponse]
