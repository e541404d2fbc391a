"""Application settings using Pydantic."""
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    database_url: str = Field(
        default="sqlite:///transfer_match.db",
        description="SQLAlchemy database URL",
    )

    # Profile source (YAML file instead of the database when set)
    profiles_file: Optional[Path] = Field(
        default=None,
        description="Path to a profiles YAML file",
    )

    # Matching
    weights_file: Optional[Path] = Field(
        default=None,
        description="Path to a scoring weights YAML file (defaults to config/weights.yaml)",
    )
    default_limit: int = Field(
        default=10,
        description="Number of recommendations returned when no limit is given",
    )
    candidate_pool_size: int = Field(
        default=500,
        description="Best deterministic matches kept in memory while streaming candidates",
    )
    store_batch_size: int = Field(
        default=200,
        description="Rows fetched per query by the SQL profile store",
    )
    only_available_candidates: bool = Field(
        default=True,
        description="Only match players/coaches that are seeking a transfer",
    )

    # External scorer (optional)
    external_scorer_kind: str = Field(
        default="none",
        description="External scorer adapter: none, http or chat",
    )
    external_scorer_url: Optional[str] = Field(
        default=None,
        description="External scorer endpoint URL",
    )
    external_scorer_api_key: Optional[str] = Field(
        default=None,
        description="External scorer bearer token",
    )
    external_scorer_model: Optional[str] = Field(
        default=None,
        description="Model name for the chat completion scorer",
    )
    external_timeout_seconds: float = Field(
        default=8.0,
        description="Timeout for a single external scorer call",
    )
    external_fan_out: int = Field(
        default=4,
        description="Maximum concurrent external scorer calls",
    )
    external_top_n: int = Field(
        default=10,
        description="Number of top deterministic matches sent to the external scorer",
    )
    external_weight: float = Field(
        default=0.3,
        description="Weight of the external score in the blend (0-0.5)",
    )
    request_deadline_seconds: float = Field(
        default=20.0,
        description="Deadline for all external calls of one request",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_file: Optional[str] = Field(default=None, description="Optional rotating log file")

    # Paths
    config_dir: Path = Field(
        default=Path(__file__).parent,
        description="Configuration directory",
    )

    @property
    def weights_path(self) -> Path:
        """Path to the scoring weights file."""
        return self.weights_file or self.config_dir / "weights.yaml"

    @property
    def project_root(self) -> Path:
        """Project root directory."""
        return self.config_dir.parent


# Global settings instance
settings = Settings()
