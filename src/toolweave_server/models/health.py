"""Health check response model."""

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response model for the health check endpoint."""

    status: str = Field(..., description="Health status of the service")
    version: str = Field(..., description="Version of toolweave-server")
    llm_provider: str | None = Field(default=None, description="Configured LLM backend")
    llm_ready: bool | None = Field(
        default=None, description="Whether the LLM provider has the credentials it needs"
    )
    llm_reason: str | None = Field(default=None, description="Why the provider is not ready, empty when ready")
    tool_servers: dict[str, str] = Field(
        default_factory=dict,
        description="Lifecycle state of each tool server, keyed by name",
    )
