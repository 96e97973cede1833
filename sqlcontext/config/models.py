"""Pydantic models for sqlcontext configuration."""

from typing import Any, Dict, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PROTOCOL = "mysql+pymysql"


class StreamingOptions(BaseModel):
    """Cursor settings for row-at-a-time result streaming.

    Server-side cursors are forward-only and read-only on every driver that
    supports them, so both flags are fixed to True.
    """

    model_config = ConfigDict(frozen=True)

    fetch_size: int = Field(default=1, ge=1, description="Rows fetched from the server per round trip")
    forward_only: bool = Field(default=True, description="Cursor can only advance")
    read_only: bool = Field(default=True, description="Cursor cannot modify data")

    @model_validator(mode='after')
    def validate_cursor_mode(self):
        """Reject scrollable or updatable cursors."""
        if not self.forward_only:
            raise ValueError("Streaming cursors must be forward-only")
        if not self.read_only:
            raise ValueError("Streaming cursors must be read-only")
        return self

    def to_execution_options(self) -> Dict[str, Any]:
        """Translate to SQLAlchemy execution options.

        ``stream_results`` asks the dialect for a server-side cursor (for
        example ``SSCursor`` on MySQL drivers); ``yield_per`` fixes the client
        buffer at ``fetch_size`` rows.
        """
        return {
            'stream_results': True,
            'yield_per': self.fetch_size,
        }


class ContextSettings(BaseModel):
    """Engine-level settings applied when a context opens its connection."""
    isolation_level: str = Field(default="AUTOCOMMIT", description="Isolation level for the connection")
    echo: bool = Field(default=False, description="Log every SQL statement through SQLAlchemy")
    connect_args: Dict[str, Any] = Field(default_factory=dict, description="Extra DB-API connect() arguments")
    streaming: StreamingOptions = Field(default_factory=StreamingOptions)

    @field_validator('isolation_level')
    def normalize_isolation_level(cls, v):
        """Store isolation levels in the upper-case form SQLAlchemy expects."""
        return v.strip().upper().replace("-", " ")


class DatabaseConfig(BaseModel):
    """Credentials and location of one database."""

    model_config = ConfigDict(populate_by_name=True)

    protocol: str = Field(default=DEFAULT_PROTOCOL, validation_alias=AliasChoices("protocol", "driver"))
    host: str
    database: str
    username: str = Field(validation_alias=AliasChoices("username", "user"))
    password: SecretStr = SecretStr("")

    @field_validator('protocol')
    def validate_protocol(cls, v):
        """Protocols look like ``dialect`` or ``dialect+driver``."""
        if not v or "://" in v:
            raise ValueError("protocol must be a dialect name such as 'mysql+pymysql'")
        return v


class EnvironmentSettings(BaseSettings):
    """Environment-specific settings."""

    model_config = SettingsConfigDict(env_prefix="SQLCONTEXT_", case_sensitive=False)

    log_level: str = Field(default="INFO")
    debug: bool = Field(default=False)
    protocol: str = Field(default=DEFAULT_PROTOCOL)
    fetch_size: int = Field(default=1, ge=1)

    def streaming_options(self) -> StreamingOptions:
        """Streaming options honouring ``SQLCONTEXT_FETCH_SIZE``."""
        return StreamingOptions(fetch_size=self.fetch_size)

    def context_settings(self, **overrides: Any) -> ContextSettings:
        """Build context settings seeded from the environment."""
        values: Dict[str, Any] = {'echo': self.debug, 'streaming': self.streaming_options()}
        values.update(overrides)
        return ContextSettings(**values)


def get_environment_settings() -> EnvironmentSettings:
    """Read the current ``SQLCONTEXT_*`` environment."""
    return EnvironmentSettings()


def resolve_protocol(protocol: Optional[str] = None) -> str:
    """Pick an explicit protocol or fall back to the environment default."""
    return protocol or get_environment_settings().protocol
