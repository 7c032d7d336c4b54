"""Core schemas for API responses."""

from pr_relay.core.schemas.responses import ApiResponse, ErrorResponse, HealthResponse

__all__ = ["ApiResponse", "ErrorResponse", "HealthResponse"]
