"""
Application configuration management using Pydantic Settings.
Editor core settings: history, canvas, responsive defaults and logging.
"""
import logging
from typing import Literal, Optional
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from dotenv import load_dotenv

# Load .env first
load_dotenv()

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Editor core settings"""

    # -------------------------
    # APPLICATION METADATA & RUNTIME
    # -------------------------
    app_name: str = "Page Editor Core"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    # -------------------------
    # LOGGING SINKS
    # -------------------------
    log_dir: Optional[str] = None
    log_rotation: str = "50 MB"
    log_retention: str = "7 days"

    # -------------------------
    # HISTORY
    # -------------------------
    history_max_states: int = Field(50, ge=1)
    patch_buffer_limit: int = Field(500, ge=1)

    # -------------------------
    # UI / CANVAS SETTINGS
    # -------------------------
    canvas_grid_size: int = Field(10, ge=1)
    canvas_snap_to_grid: bool = False
    min_component_size: int = Field(50, ge=0)
    duplicate_offset: int = 20

    # -------------------------
    # RESPONSIVE DEFAULTS
    # -------------------------
    breakpoint_tablet: int = 768
    breakpoint_mobile: int = 480

    # -------------------------
    # VALIDATORS
    # -------------------------
    @field_validator('log_level', mode='before')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        return str(v).upper()

    @field_validator('environment', mode='before')
    @classmethod
    def validate_environment(cls, v: str) -> str:
        valid_envs = ["development", "staging", "production"]
        if v not in valid_envs:
            logger.warning(f"Invalid environment '{v}', defaulting to 'development'")
            return "development"
        return v

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_prefix="EDITOR_",
        validate_default=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    logger.info("Initializing settings...")
    return Settings()


settings = get_settings()
