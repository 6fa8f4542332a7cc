"""Schemas for the diagnostics endpoints (/v1/diagnostics)."""

from pydantic import BaseModel, Field


class ConnectionStats(BaseModel):
    """Connection reuse report for the storage backends."""

    reused_times: str = Field(alias="reusedTimes")
    postgres_enabled: bool = Field(alias="postgresEnabled")

    model_config = {"populate_by_name": True}
