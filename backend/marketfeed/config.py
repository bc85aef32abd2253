from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "postgresql+asyncpg://marketfeed:marketfeed@db:5432/marketfeed"
    log_level: str = "INFO"

    market_provider: str = "alphavantage"
    alpha_vantage_api_key: str = ""
    alpha_vantage_base_url: str = "https://www.alphavantage.co"

    remote_timeout: float = 10.0
    validation_timeout: float = 10.0

    cache_freshness_seconds: int = 300
    cache_retention_seconds: int = 86400
    cache_prune_interval_minutes: int = 60
    name_enrichment_interval_minutes: int = 15

    model_config = {"env_prefix": ""}


settings = Settings()
