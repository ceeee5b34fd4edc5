"""Configuration for the grid editor engine.

All options can be set via environment variables with the ``GRIDSHEET_``
prefix, or via a ``.env`` file in the working directory. Components also take
explicit constructor arguments, which win over these settings.

Environment Variables:
    GRIDSHEET_DEBOUNCE_SECONDS: Inactivity window before a save (default: 1.5)
    GRIDSHEET_SAVED_DISPLAY_SECONDS: How long "saved" shows (default: 2.0)
    GRIDSHEET_DEFAULT_COLUMN_WIDTH: Width of new columns in px (default: 150)
    GRIDSHEET_DEFAULT_ROW_HEIGHT: Height of new rows in px (default: 36)
    GRIDSHEET_MIN_COLUMN_WIDTH: Column resize floor in px (default: 60)
    GRIDSHEET_MIN_ROW_HEIGHT: Row resize floor in px (default: 24)
    GRIDSHEET_SEED_COLUMNS: Columns in a freshly seeded sheet (default: 5)
    GRIDSHEET_SEED_ROWS: Rows in a freshly seeded sheet (default: 10)
    GRIDSHEET_MAX_PASTE_NEW_ROWS: Rows a single paste may add (default: 100)
    GRIDSHEET_MAX_PASTE_NEW_COLUMNS: Columns a single paste may add (default: 100)
    GRIDSHEET_STORE_MAX_RETRIES: Retries for remote store calls (default: 3)
    GRIDSHEET_STORE_BASE_DELAY: Backoff base delay in seconds (default: 1.0)
    GRIDSHEET_LOG_LEVEL: Logging level (default: INFO)
"""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GridSettings(BaseSettings):
    """Engine settings loaded from environment variables.

    Example .env file:
        GRIDSHEET_DEBOUNCE_SECONDS=2
        GRIDSHEET_LOG_LEVEL=DEBUG
    """

    model_config = SettingsConfigDict(
        env_prefix="GRIDSHEET_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # =========================================================================
    # Persistence
    # =========================================================================

    debounce_seconds: float = 1.5
    """Seconds of inactivity before pending edits are flushed to the store."""

    saved_display_seconds: float = 2.0
    """Seconds the "saved" status stays visible before returning to idle."""

    store_max_retries: int = 3
    """Retry attempts for a failing remote store call."""

    store_base_delay: float = 1.0
    """Base delay for exponential backoff between store retries."""

    # =========================================================================
    # Grid geometry
    # =========================================================================

    default_column_width: int = 150
    default_row_height: int = 36
    min_column_width: int = 60
    min_row_height: int = 24

    seed_columns: int = 5
    """Number of lettered columns created for an empty sheet."""

    seed_rows: int = 10
    """Number of blank rows created for an empty sheet."""

    # =========================================================================
    # Clipboard
    # =========================================================================

    max_paste_new_rows: int = 100
    max_paste_new_columns: int = 100

    # =========================================================================
    # Logging
    # =========================================================================

    log_level: str = "INFO"

    @field_validator("debounce_seconds", "saved_display_seconds", "store_base_delay")
    @classmethod
    def _non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @field_validator(
        "min_column_width",
        "min_row_height",
        "default_column_width",
        "default_row_height",
        "seed_columns",
        "seed_rows",
    )
    @classmethod
    def _positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be a positive integer")
        return v

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


@lru_cache
def get_settings() -> GridSettings:
    """Return the process-wide settings instance."""
    return GridSettings()
