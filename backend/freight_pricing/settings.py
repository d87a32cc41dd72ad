from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_rate_table_path() -> str:
    # Bundled sample of the ANTT reference table; production points RATE_TABLE_PATH at the synced export.
    return str(Path(__file__).resolve().parents[1] / "assets" / "antt_rates_sample.json")


class Settings(BaseSettings):
    """Validated settings (env-driven), keeping config out of code for easy extension."""

    model_config = SettingsConfigDict(
        # Support both "repo root/.env" and "backend/.env" (local dev)
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    out_dir: str = Field(default="out", alias="OUT_DIR")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    rate_table_path: str = Field(default_factory=_default_rate_table_path, alias="RATE_TABLE_PATH")

    # Batch control (bounds the cost of a single recalculation run)
    floor_batch_max_records: int = Field(default=500, ge=1, le=10_000, alias="FLOOR_BATCH_MAX_RECORDS")
    floor_batch_concurrency: int = Field(default=1, ge=1, le=64, alias="FLOOR_BATCH_CONCURRENCY")

    # Axle count assumed when a freight does not declare one.
    default_axle_count: int = Field(default=5, ge=2, le=9, alias="DEFAULT_AXLE_COUNT")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return str(value or "INFO").strip().upper() or "INFO"


settings = Settings()
