"""Common response schemas."""

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Service status")
    environment: str = Field(..., description="Current environment")
    pipeline_ready: bool = Field(False, description="Whether the pipeline was built at startup")
    in_flight: int = Field(0, description="Domains currently being processed")


class MessageResponse(BaseModel):
    """Generic message response."""

    message: str = Field(..., description="Response message")
