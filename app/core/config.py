from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")
    database_echo: bool = Field(False, alias="DATABASE_ECHO")

    log_level: str = Field("INFO", alias="LOG_LEVEL")
    api_prefix: str = Field("/api", alias="API_PREFIX")
    cors_origins: List[str] = Field(["*"], alias="CORS_ORIGINS")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
