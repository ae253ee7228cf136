"""System status schemas."""

from pydantic import BaseModel


class HealthResponse(BaseModel):
    """Health check response for the local agent."""
    status: str = "ok"
    version: str
    service: str = "mediasync"
