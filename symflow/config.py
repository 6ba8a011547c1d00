"""Application configuration using Pydantic Settings."""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from symflow.engine.config import EngineConfig


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="SYMFLOW_",
    )

    # App settings
    app_name: str = "Symbolic Flow Graph Engine"
    debug: bool = False

    # ==========================================================================
    # ENGINE DEFAULTS
    # Used for requests that do not carry their own config
    # ==========================================================================

    # Layout
    horizontal_spacing: int = 280
    vertical_spacing: int = 180
    start_x: int = 100
    start_y: int = 300
    error_lane_offset: int = 180
    alternative_lane_offset: int = -180

    # Repair and resolution
    autofix_max_iterations: int = 2
    fuzzy_min_length: int = 3

    def engine_config(self) -> EngineConfig:
        """Build the engine config these settings describe."""
        return EngineConfig(
            horizontal_spacing=self.horizontal_spacing,
            vertical_spacing=self.vertical_spacing,
            start_x=self.start_x,
            start_y=self.start_y,
            error_lane_offset=self.error_lane_offset,
            alternative_lane_offset=self.alternative_lane_offset,
            autofix_max_iterations=self.autofix_max_iterations,
            fuzzy_min_length=self.fuzzy_min_length,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
