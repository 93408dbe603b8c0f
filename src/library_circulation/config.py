"""Configuration management for the library circulation core.

Settings are loaded from the environment (``LIBRARY_CIRCULATION_`` prefix)
or a local ``.env`` file and validated with pydantic-settings. Circulation
policy values (loan periods, fine rate, retry budget) live here so that the
coordinator and the tool surface agree on them.
"""

from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CirculationConfig(BaseSettings):
    """Server and circulation policy configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LIBRARY_CIRCULATION_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Server Metadata ===

    server_name: str = Field(
        default="library-circulation",
        description="Server name used in the MCP handshake",
        pattern=r"^[a-z0-9-]+$",
    )

    server_version: str = Field(
        default="0.1.0",
        description="Server version",
        pattern=r"^\d+\.\d+\.\d+(-[a-zA-Z0-9.]+)?$",
    )

    transport: str = Field(
        default="stdio",
        description="Transport mechanism for the tool server",
        pattern=r"^stdio$",
    )

    # === Database Configuration ===

    database_path: Path = Field(
        default=Path("data/circulation.db"),
        description="SQLite database file path",
    )

    database_url: str | None = Field(
        default=None,
        description="SQLAlchemy URL; overrides database_path when set",
    )

    lock_timeout_seconds: float = Field(
        default=5.0,
        description="Upper bound on waiting for a database lock or connection",
        gt=0,
    )

    # === Circulation Policy ===

    default_loan_period_days: int = Field(
        default=14,
        description="Loan period used when the caller does not supply one",
        ge=1,
    )

    max_loan_period_days: int = Field(
        default=60,
        description="Longest loan period a caller may request",
        ge=1,
    )

    daily_fine_rate: float = Field(
        default=1.0,
        description="Fine charged per whole day overdue",
        ge=0.0,
    )

    # === Transaction Handling ===

    max_transaction_retries: int = Field(
        default=3,
        description="Retries of an atomic unit after a transient failure",
        ge=0,
        le=10,
    )

    retry_backoff_seconds: float = Field(
        default=0.05,
        description="Base delay between retries; grows linearly per attempt",
        ge=0.0,
    )

    overdue_batch_size: int = Field(
        default=100,
        description="Rows fetched per round trip when scanning overdue loans",
        ge=1,
        le=1000,
    )

    # === Development Configuration ===

    debug: bool = Field(
        default=False,
        description="Enable debug logging",
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
        pattern=r"^(DEBUG|INFO|WARNING|ERROR)$",
    )

    @field_validator("database_path")
    @classmethod
    def validate_database_path(cls, v: Path) -> Path:
        """Store the database path as an absolute path."""
        return v.absolute()

    @field_validator("server_name")
    @classmethod
    def validate_server_name(cls, v: str) -> str:
        if len(v) < 3:
            raise ValueError("Server name must be at least 3 characters")
        if len(v) > 50:
            raise ValueError("Server name must not exceed 50 characters")
        return v

    @model_validator(mode="after")
    def validate_loan_periods(self) -> "CirculationConfig":
        """The default loan period has to be one a caller could request."""
        if self.default_loan_period_days > self.max_loan_period_days:
            raise ValueError(
                "default_loan_period_days cannot exceed max_loan_period_days"
            )
        return self

    @property
    def is_development(self) -> bool:
        return self.debug or self.log_level == "DEBUG"

    @property
    def server_info(self) -> dict[str, str]:
        return {
            "name": self.server_name,
            "version": self.server_version,
            "transport": self.transport,
        }

    def get_database_url(self) -> str:
        """Get the SQLAlchemy database URL."""
        if self.database_url:
            return self.database_url
        return f"sqlite:///{self.database_path}"


class _ConfigStore:
    """Internal storage for the configuration singleton."""

    _instance: CirculationConfig | None = None


def get_config() -> CirculationConfig:
    """Get or create the process-wide configuration instance."""
    if _ConfigStore._instance is None:  # type: ignore[reportPrivateUsage]
        _ConfigStore._instance = CirculationConfig()  # type: ignore[reportPrivateUsage]
    return _ConfigStore._instance  # type: ignore[reportPrivateUsage]


def reset_config() -> None:
    """Reset configuration (useful for testing)."""
    _ConfigStore._instance = None  # type: ignore[reportPrivateUsage]
