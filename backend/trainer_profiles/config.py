import os
from functools import lru_cache
from typing import Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: Optional[str] = Field(None, alias="TRAINER_DATABASE_URL")
    database_pool_size: int = Field(10, alias="TRAINER_DATABASE_POOL_SIZE")
    database_max_overflow: int = Field(10, alias="TRAINER_DATABASE_MAX_OVERFLOW")
    database_echo: bool = Field(False, alias="TRAINER_DATABASE_ECHO")
    slug_view_name: str = Field("trainers_with_slugs", alias="TRAINER_SLUG_VIEW_NAME")
    legacy_candidate_limit: int = Field(10, ge=2, alias="TRAINER_LEGACY_CANDIDATE_LIMIT")
    telemetry_history: int = Field(200, ge=0, alias="TRAINER_TELEMETRY_HISTORY")
    debug_endpoints: bool = Field(False, alias="TRAINER_DEBUG_ENDPOINTS")
    cors_origins: str = Field("*", alias="TRAINER_CORS_ORIGINS")

    class Config:
        env_file = os.getenv("ENV_FILE", ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()  # type: ignore[arg-type]
    except ValidationError as exc:
        raise RuntimeError(f"Invalid backend configuration: {exc}") from exc
