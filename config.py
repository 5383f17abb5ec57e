"""
Runtime settings, read from the environment (or a local .env file).

- DATABASE_URL -> MongoDB connection string; unset keeps games in memory
- DATABASE_NAME / COLLECTION_NAME -> where games are stored
- LOG_LEVEL / LOG_JSON -> logging output
- CORS_ORIGINS -> comma separated list of allowed origins
- HOST / PORT -> uvicorn bind address
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database
    database_url: Optional[str] = Field(None, alias="DATABASE_URL")
    database_name: str = Field("game_collection_db", alias="DATABASE_NAME")
    collection_name: str = Field("games", alias="COLLECTION_NAME")

    # Logging
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # HTTP
    cors_origins: str = Field("*", alias="CORS_ORIGINS")
    host: str = Field("0.0.0.0", alias="HOST")
    port: int = Field(8000, alias="PORT")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("database_url")
    @classmethod
    def blank_url_is_unset(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @field_validator("log_level")
    @classmethod
    def upper_level(cls, v: str) -> str:
        return v.upper()

    @property
    def allowed_origins(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
