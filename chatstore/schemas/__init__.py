"""Pydantic schemas for API requests and responses."""

from chatstore.schemas.common import ErrorDetail, ErrorResponse
from chatstore.schemas.diagnostics import ConnectionStats
from chatstore.schemas.user import TelegramUser

__all__ = ["ErrorDetail", "ErrorResponse", "ConnectionStats", "TelegramUser"]
