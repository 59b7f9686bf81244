"""Application configuration using Pydantic settings."""
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the coverage engine."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    default_cell_size_meters: float = Field(
        default=100.0, validation_alias="COVERAGE_CELL_SIZE_METERS"
    )
    max_grid_cells: int = Field(default=1500, validation_alias="COVERAGE_MAX_GRID_CELLS")
    no_data_color: str = Field(default="#808080", validation_alias="COVERAGE_NO_DATA_COLOR")
    fallback_color: str = Field(default="#808080", validation_alias="COVERAGE_FALLBACK_COLOR")
    zone_cache_size: int = Field(default=32, validation_alias="COVERAGE_ZONE_CACHE_SIZE")
    default_center_lat: float = Field(default=28.64453086, validation_alias="COVERAGE_CENTER_LAT")
    default_center_lng: float = Field(default=77.37324242, validation_alias="COVERAGE_CENTER_LNG")


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()
