from pydantic import Field
from pydantic_settings import BaseSettings


class ClientSettings(BaseSettings):
    """Client configuration: where the API lives and how long fetched data stays cached."""

    api_base_url: str = Field("http://localhost:8000", alias="API_BASE_URL")
    api_prefix: str = Field("/api", alias="API_PREFIX")

    # Fetched data is fresh for stale_time; unused entries are dropped after gc_time
    query_stale_time_seconds: float = Field(300, alias="QUERY_STALE_TIME_SECONDS")
    query_gc_time_seconds: float = Field(600, alias="QUERY_GC_TIME_SECONDS")
    query_retry: int = Field(3, alias="QUERY_RETRY")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


client_settings = ClientSettings()
