"""Pydantic response models."""

from enum import StrEnum

from pydantic import BaseModel


class Status(StrEnum):
    """Health check status values."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class HealthStatus(BaseModel):
    """Health check response."""

    status: Status


class AppInfo(BaseModel):
    """Application version and environment info."""

    app_version: str
    python_version: str
    cli_version: str
    service_name: str
