"""Configuration management using Pydantic Settings."""

import logging
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class BettingConfig(BaseModel):
    """Bet creation and progress policy."""

    allowed_durations: list[int] = Field(default_factory=lambda: [7, 30, 90])
    on_track_threshold_pct: Decimal = Decimal("75")

    @field_validator("allowed_durations")
    @classmethod
    def validate_durations(cls, v: list[int]) -> list[int]:
        """Durations must be positive day counts."""
        if not v or any(days <= 0 for days in v):
            raise ValueError("allowed_durations must be a non-empty list of positive integers")
        return sorted(set(v))


class LeaderboardConfig(BaseModel):
    """Leaderboard scoring policy."""

    scoring: Literal["stake", "flat"] = "stake"
    stake_multiplier: Decimal = Decimal("1")
    flat_points: int = 100


class PaymentsConfig(BaseModel):
    """Stake payment parameters."""

    paper_mode: bool = True
    currency: str = "usd"
    timeout_seconds: float = 10.0
    max_retries: int = 3


class DataProviderConfig(BaseModel):
    """Financial-data provider connection parameters."""

    base_url: str = "http://localhost:8100/api/v1"
    timeout_seconds: float = 10.0
    max_retries: int = 3


class SchedulerConfig(BaseModel):
    """Job scheduling intervals in minutes."""

    resolve_interval_minutes: int = 60


class ApiConfig(BaseModel):
    """HTTP API server parameters."""

    host: str = "0.0.0.0"
    port: int = 8000
    allowed_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000"]
    )


CONFIG_SECTIONS = (
    "betting",
    "leaderboard",
    "payments",
    "data_provider",
    "scheduler",
    "api",
)


class Settings(BaseSettings):
    """Main configuration class."""

    # Paths
    data_dir: Path = Path("data")

    # API Keys
    stripe_secret_key: str = ""
    finance_api_key: str = ""
    logfire_token: str = ""

    log_level: str = "INFO"

    # Nested configuration sections
    betting: BettingConfig = Field(default_factory=BettingConfig)
    leaderboard: LeaderboardConfig = Field(default_factory=LeaderboardConfig)
    payments: PaymentsConfig = Field(default_factory=PaymentsConfig)
    data_provider: DataProviderConfig = Field(default_factory=DataProviderConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("data_dir", mode="after")
    @classmethod
    def resolve_data_dir(cls, v: Path) -> Path:
        """Resolve data directory to absolute path."""
        return v.resolve()

    @property
    def paper_mode(self) -> bool:
        """True when stakes are not sent to a live payment account."""
        return self.payments.paper_mode or not self.stripe_secret_key

    def load_yaml_config(self) -> None:
        """Overlay sections from ``data_dir/config.yaml`` onto the current values.

        Keys missing from the file keep their env or default value. Unknown
        top-level sections are ignored.
        """
        config_path = self.data_dir / "config.yaml"
        if not config_path.exists():
            logger.warning(
                f"No config file at {config_path}, using defaults. "
                "Run 'python -m pledge init' to create one."
            )
            return

        try:
            overrides = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            logger.error(f"Invalid YAML in {config_path}: {e}")
            raise

        for name in CONFIG_SECTIONS:
            values = overrides.get(name)
            if not values:
                continue
            current: BaseModel = getattr(self, name)
            merged = type(current).model_validate({**current.model_dump(), **values})
            setattr(self, name, merged)

        logger.info(f"Loaded configuration from {config_path}")


@lru_cache()
def get_settings() -> Settings:
    """Get singleton Settings instance."""
    settings = Settings()
    settings.load_yaml_config()
    return settings
