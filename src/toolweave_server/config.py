"""Configuration module for toolweave-server using pydantic-settings."""

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from toolweave_server.llm.types import ProviderConfig, ProviderKind
from toolweave_server.tool_servers.types import ToolServerConfig


class ToolServerSettings(BaseModel):
    """One entry of the ``tool_servers`` setting."""

    name: str
    command: str = ""
    args: list[str] = Field(default_factory=list)
    kind: str = "stdio"
    env: dict[str, str] = Field(default_factory=dict)
    cwd: str | None = None
    enabled: bool = True
    url: str | None = None
    port: int | None = Field(default=None, ge=1, le=65535)

    @model_validator(mode="after")
    def _check_target(self) -> "ToolServerSettings":
        if not (self.command or self.url or self.port):
            raise ValueError(f"tool server '{self.name}' needs a command, a url or a port")
        return self

    def to_config(self) -> ToolServerConfig:
        return ToolServerConfig(
            name=self.name,
            command=self.command,
            args=tuple(self.args),
            kind=self.kind,
            env=dict(self.env),
            cwd=self.cwd,
            enabled=self.enabled,
            url=self.url,
            port=self.port,
        )


class ToolweaveSettings(BaseSettings):
    """Main configuration settings for toolweave-server.

    All settings can be overridden via environment variables with the
    TOOLWEAVE_ prefix. For example, TOOLWEAVE_LLM_PROVIDER=openai selects the
    OpenAI backend. ``TOOLWEAVE_TOOL_SERVERS`` is read as a JSON list.
    """

    # Server
    host: str = "127.0.0.1"
    port: int = 8000

    # CORS
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Logging
    log_level: str = "INFO"

    # LLM
    llm_provider: ProviderKind = ProviderKind.OLLAMA
    llm_model: str = "llama3.2:latest"
    llm_api_key: str | None = None
    llm_base_url: str | None = None
    llm_organization: str | None = None
    llm_api_version: str | None = None
    llm_temperature: float = 0.2
    llm_max_tokens: int = 2048
    llm_timeout: float = Field(default=60.0, gt=0)

    # Tool servers
    tool_servers: list[ToolServerSettings] = Field(default_factory=list)
    handshake_timeout: float = 15.0
    request_timeout: float = 30.0
    stop_timeout: float = 5.0
    max_malformed_lines: int = 3
    max_consecutive_timeouts: int = 3

    # Orchestration
    max_orchestration_rounds: int = Field(default=3, ge=1)
    incorporate_tool_results: bool = True
    default_tool_server: str | None = None
    default_tool: str | None = None

    model_config = SettingsConfigDict(env_prefix="TOOLWEAVE_")

    def provider_config(self) -> ProviderConfig:
        """Build the LLM provider configuration."""
        return ProviderConfig(
            provider=self.llm_provider,
            model=self.llm_model,
            api_key=self.llm_api_key,
            base_url=self.llm_base_url,
            organization=self.llm_organization,
            api_version=self.llm_api_version,
            temperature=self.llm_temperature,
            max_tokens=self.llm_max_tokens,
            timeout=self.llm_timeout,
        )

    def tool_server_configs(self) -> list[ToolServerConfig]:
        """Build the configured tool servers, including disabled ones."""
        return [server.to_config() for server in self.tool_servers]

    def tool_server_config(self, name: str) -> ToolServerConfig | None:
        for server in self.tool_servers:
            if server.name == name:
                return server.to_config()
        return None
