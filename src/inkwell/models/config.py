"""Configuration models for Inkwell."""

from pydantic import BaseModel, Field, HttpUrl
from pathlib import Path
from typing import Optional
import yaml
import os
import stat


class LLMConfig(BaseModel):
    """Configuration for the upstream chat-completion API."""

    endpoint: HttpUrl = Field(
        default="https://api.openai.com/v1",
        description="OpenAI-compatible API base URL"
    )

    api_key: str = Field(
        ...,
        description="API key for authentication"
    )

    model: str = Field(
        default="gpt-4o",
        description="Model identifier"
    )

    temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Sampling temperature"
    )

    max_tokens: int = Field(
        default=500,
        ge=1,
        description="Maximum output tokens per reply"
    )

    timeout: float = Field(
        default=60.0,
        gt=0,
        description="HTTP timeout in seconds for upstream requests"
    )

    model_config = {"frozen": True}


class ServerConfig(BaseModel):
    """Where the assistant proxy listens."""

    host: str = Field(default="127.0.0.1")

    port: int = Field(default=3001, ge=1, le=65535)

    model_config = {"frozen": True}


class AssistantConfig(BaseModel):
    """Client-side settings for talking to the proxy."""

    proxy_url: str = Field(
        default="http://127.0.0.1:3001",
        description="Base URL of the assistant proxy"
    )

    max_history: int = Field(
        default=6,
        ge=1,
        description="Number of turns kept in conversation history"
    )

    model_config = {"frozen": True}


class StoreConfig(BaseModel):
    """Credentials for the hosted project store."""

    url: Optional[HttpUrl] = Field(default=None, description="Store base URL")

    api_key: Optional[str] = Field(default=None, description="Public (anon) API key")

    access_token: Optional[str] = Field(
        default=None,
        description="Signed-in user's access token (falls back to api_key)"
    )

    user_id: Optional[str] = Field(default=None, description="Signed-in user's id")

    @property
    def is_configured(self) -> bool:
        return bool(self.url and self.api_key)

    model_config = {"frozen": True}


class Config(BaseModel):
    """Root configuration for Inkwell."""

    llm: LLMConfig = Field(..., description="Upstream LLM API settings")
    server: ServerConfig = Field(default_factory=ServerConfig, description="Proxy server settings")
    assistant: AssistantConfig = Field(default_factory=AssistantConfig, description="Assistant client settings")
    store: StoreConfig = Field(default_factory=StoreConfig, description="Project store settings")

    @staticmethod
    def read_file(path: Path) -> dict:
        """
        Read raw configuration data from a YAML file.

        Args:
            path: Path to config.yaml file

        Returns:
            Parsed YAML mapping (empty dict for an empty file)

        Raises:
            PermissionError: If file permissions are too open
            FileNotFoundError: If config file doesn't exist
        """
        if not path.exists():
            raise FileNotFoundError(
                f"Configuration file not found at {path}\n\n"
                f"Please create the file with the following format:\n\n"
                f"llm:\n"
                f"  endpoint: https://api.openai.com/v1\n"
                f"  api_key: YOUR_API_KEY_HERE\n"
                f"  model: gpt-4o\n\n"
                f"server:\n"
                f"  port: 3001\n"
            )

        # The file holds API keys, so it must be 600
        mode = os.stat(path).st_mode
        if mode & (stat.S_IRWXG | stat.S_IRWXO):
            raise PermissionError(
                f"Config file has overly permissive permissions: {oct(mode)}\n"
                f"Run: chmod 600 {path}"
            )

        with open(path) as f:
            return yaml.safe_load(f) or {}

    @classmethod
    def load(cls, path: Path) -> "Config":
        """
        Load configuration from YAML file.

        Raises:
            PermissionError: If file permissions are too open
            FileNotFoundError: If config file doesn't exist
            ValueError: If YAML is invalid or validation fails
        """
        return cls(**cls.read_file(path))

    model_config = {"frozen": True}
