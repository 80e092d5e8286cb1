"""Pydantic models for LLM provider endpoints."""

from pydantic import BaseModel, Field


class LLMStatusResponse(BaseModel):
    provider: str = Field(description="Configured LLM backend")
    model: str = Field(description="Configured model")
    ready: bool = Field(description="Whether required credentials are present")
    reason: str = Field(default="", description="Why the provider is not ready, empty when ready")
    available: bool = Field(description="Whether the backend answered a probe")


class LLMModelsResponse(BaseModel):
    provider: str
    models: list[str] = Field(default_factory=list)


class UpdateCredentialRequest(BaseModel):
    api_key: str = Field(min_length=1, description="New API key")
