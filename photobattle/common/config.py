import logging
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Exception raised for configuration errors."""

    pass


class BattleConfig(BaseModel):
    link_duration_days: int = 30
    link_history_limit: int = 5
    merge_max_attempts: int = 3
    merge_retry_base_delay_seconds: float = 0.05
    replay_retired_opponents: bool = True  # Deleted photos still count as opponents in replay
    exploration_vote_threshold: int = 5

    @field_validator("link_duration_days", "merge_max_attempts")
    @classmethod
    def validate_positive(cls, v) -> int:
        """Validate durations and attempt counts are positive."""
        if v <= 0:
            raise ValueError("value must be greater than 0")
        return v

    @field_validator("link_history_limit", "exploration_vote_threshold")
    @classmethod
    def validate_non_negative(cls, v) -> int:
        """Validate limits are not negative."""
        if v < 0:
            raise ValueError("value must be >= 0")
        return v

    @field_validator("merge_retry_base_delay_seconds")
    @classmethod
    def validate_delay(cls, v) -> float:
        """Validate retry delay is not negative."""
        if v < 0:
            raise ValueError("merge_retry_base_delay_seconds must be >= 0")
        return v


class Settings(BaseSettings):
    data_dir: Path = Path("data")
    config_path: Path = Path("config.yaml")
    log_path: Path | None = None
    battle: BattleConfig = Field(default_factory=BattleConfig)

    model_config = SettingsConfigDict(
        env_prefix="PHOTOBATTLE_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def resolved_log_path(self) -> Path:
        """Log file path, defaulting to ``<data_dir>/logs/photobattle.jsonl``."""
        if self.log_path is not None:
            return self.log_path
        return self.data_dir / "logs" / "photobattle.jsonl"

    @field_validator("data_dir", mode="before")
    @classmethod
    def validate_data_dir(cls, v) -> Path:
        """Use the default data directory when the value is empty."""
        if v is None or (isinstance(v, str) and not v.strip()):
            logger.warning("Empty data_dir setting. Using default: data")
            return Path("data")
        return Path(v)
