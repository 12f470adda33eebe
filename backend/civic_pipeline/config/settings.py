"""Application Settings - Central Configuration"""
from functools import lru_cache
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # MongoDB
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "civic_issues_dev"

    # Push gateway (Expo push API)
    push_gateway_url: str = "https://exp.host/--/api/v2/push/send"
    push_gateway_access_token: str = ""
    push_gateway_timeout_seconds: float = 10.0
    push_token_prefixes: str = "ExponentPushToken,ExpoPushToken"

    # Pipeline
    pipeline_enabled: bool = True
    new_issue_debounce_ms: int = 500  # Let the citizen app finish its initial writes
    issue_event_concurrency: int = 4
    watch_retry_seconds: float = 5.0
    bulk_sweep_interval_seconds: int = 300  # 0 disables the periodic sweep

    # Duplicate detection
    duplicate_window_days: int = 7
    duplicate_min_score: float = 0.6
    duplicate_radius_meters: float = 100.0

    # Logging
    logs_path: str = "./logs"
    log_level: str = "INFO"

    # CORS - set to "*" to allow all origins
    cors_origins: str = "*"

    # Environment
    environment: str = "development"
    debug: bool = True

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins string to list"""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def push_token_prefixes_list(self) -> List[str]:
        """Parse accepted push token prefixes to list"""
        return [prefix.strip() for prefix in self.push_token_prefixes.split(",") if prefix.strip()]

    @property
    def new_issue_debounce_seconds(self) -> float:
        """Debounce delay for freshly created issues, in seconds"""
        return self.new_issue_debounce_ms / 1000.0


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
