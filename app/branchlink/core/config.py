from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env")

    APP_NAME: str = "BranchLink"
    DATABASE_URL: str = "sqlite+pysqlite:///./branchlink.db"
    REQUEST_EXPIRY_MINUTES: int = 30
    EXPIRY_SWEEP_ENABLED: bool = True
    EXPIRY_SWEEP_INTERVAL_SECONDS: int = 30
    NOTIFICATION_TTL_SECONDS: int = 7
    NOTIFICATION_BUFFER_SIZE: int = 200
    TRAVEL_SPEED_KMH: float = 40.0
    TRAVEL_BUFFER_MINUTES: int = 5
    REQUESTS_LIST_MAX_PAGE_SIZE: int = 200
    LOG_LEVEL: str = "INFO"
    METRICS_ENABLED: bool = True
    OPS_ENABLE_INTEGRITY_SCAN: bool = True
    SEED_DEMO_DATA: bool = False

settings = Settings()
