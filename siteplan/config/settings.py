from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "SitePlan"
    debug: bool = True
    log_level: Optional[str] = None
    database_url: str = Field("sqlite:///./siteplan.db", validation_alias="DATABASE_URL")
    redis_url: str = Field("redis://localhost:6379/0", validation_alias="REDIS_URL")
    cache_enabled: bool = False
    cache_ttl_seconds: int = 3600

    # Optimization knobs
    feasibility_threshold: float = 70.0
    default_trade_capacity: int = 10
    max_leveling_shift_days: int = 365
    parallel_alternatives: bool = True
    max_workers: int = 6


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
