"""Configuration settings for budaction.

Settings are read from environment variables (and an optional `.env` file)
through pydantic-settings. Builders and adapters fall back to these values
when an action or router does not set its own.
"""

from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from budaction.__about__ import __version__

from .constants import Environment, LogLevel


load_dotenv()


class AppConfig(BaseSettings):
    """Application configuration for budaction.

    Attributes:
        env: Deployment environment, read from `NAMESPACE`.
        debug: Enables console log rendering. Defaults from `env`.
        log_level: Root log level. Defaults from `env`.
        action_default_timeout_ms: Timeout applied to actions that set none.
        action_retry_max_attempts: Attempts applied to actions without a retry policy.
        action_retry_delay_ms: Delay between those default attempts.
        router_path_prefix: Prefix used by `create_router` when none is given.
        remote_timeout_seconds: Request timeout of the HTTP action client.
    """

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    # App Info
    name: str = __version__.split("@")[0]
    version: str = __version__.split("@")[-1]
    description: str = "Typed server actions with routing and client invocation state"

    # Deployment configs
    env: Environment = Field(Environment.DEVELOPMENT, alias="NAMESPACE")
    debug: Optional[bool] = Field(None, alias="DEBUG")
    log_level: Optional[LogLevel] = Field(None, alias="LOG_LEVEL")

    # Execution defaults
    action_default_timeout_ms: Optional[int] = Field(
        None,
        alias="ACTION_DEFAULT_TIMEOUT_MS",
        ge=1,
        description="Timeout in milliseconds for actions that do not declare one",
    )
    action_retry_max_attempts: int = Field(
        1,
        alias="ACTION_RETRY_MAX_ATTEMPTS",
        ge=1,
        description="Max attempts for actions that do not declare a retry policy",
    )
    action_retry_delay_ms: int = Field(
        0,
        alias="ACTION_RETRY_DELAY_MS",
        ge=0,
        description="Delay in milliseconds between default retry attempts",
    )

    # Routing
    router_path_prefix: str = Field("", alias="ROUTER_PATH_PREFIX")

    # Remote invocation
    remote_timeout_seconds: float = Field(30.0, alias="REMOTE_TIMEOUT_SECONDS", gt=0)

    @model_validator(mode="before")
    @classmethod
    def resolve_env(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        """Convert `env`/`NAMESPACE` strings to `Environment` instances."""
        if isinstance(data.get("env"), str):
            data["env"] = Environment.from_string(data["env"])
        elif isinstance(data.get("NAMESPACE"), str):
            data["NAMESPACE"] = Environment.from_string(data["NAMESPACE"])
        if isinstance(data.get("LOG_LEVEL"), str):
            data["LOG_LEVEL"] = data["LOG_LEVEL"].upper()
        return data

    @model_validator(mode="after")
    def set_env_details(self) -> "AppConfig":
        """Fill `log_level` and `debug` from the environment when unset."""
        self.log_level = self.env.log_level if self.log_level is None else self.log_level
        self.debug = self.env.debug if self.debug is None else self.debug

        return self


app_settings = AppConfig()

# Backward compatibility alias
settings = app_settings
