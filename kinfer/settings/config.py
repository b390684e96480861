# kinfer/settings/config.py  (Pydantic v2)
from typing import Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import AliasChoices, Field


class Settings(BaseSettings):
    # ---------- Database ----------
    DATABASE_URL: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("DATABASE_URL", "KINFER_DATABASE_URL"),
    )
    # Only for dev/tests; production schema is managed by Alembic
    RUN_DB_CREATE_ALL: bool = Field(default=False, env=["RUN_DB_CREATE_ALL"])

    # ---------- Inference ----------
    # 2 = uncle/aunt, niece/nephew, in-laws; 3 adds cousins
    INFERENCE_MAX_TIER: int = Field(default=3, ge=2, le=3, env=["INFERENCE_MAX_TIER"])
    INFERENCE_WORKERS: int = Field(default=1, ge=1, env=["INFERENCE_WORKERS"])
    INFERENCE_QUEUE_SIZE: int = Field(default=1000, ge=1, env=["INFERENCE_QUEUE_SIZE"])

    # ---------- Connection requests ----------
    CONNECTION_REQUEST_TTL_DAYS: int = Field(default=30, env=["CONNECTION_REQUEST_TTL_DAYS"])

    # ---------- Logging ----------
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO", env=["LOG_LEVEL"])

    # ---------- pydantic-settings config ----------
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,  # allow lower/upper env names
        extra="ignore",
    )


settings = Settings()
