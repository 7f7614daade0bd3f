"""
Configuration management for Pulse Analytics
"""
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "Pulse Analytics"
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"
    log_to_file: bool = True
    log_dir: str = "logs"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    frontend_url: str = "http://localhost:3000"

    # Database
    database_url: str = "sqlite:///./pulse.db"

    # Caching
    report_list_cache_ttl_seconds: int = 60
    analytics_cache_ttl_seconds: int = 300
    cache_max_entries: int = 500

    # Analytics
    correlation_max_lag_days: int = 7

    # Reports
    report_storage_dir: str = "./storage/reports"
    pdf_renderer: str = "reportlab"  # reportlab | basic

    # Job queue
    queue_max_records: int = 10000
    queue_job_timeout_seconds: Optional[float] = None  # None = jobs may run indefinitely

    # Scheduler
    scheduler_enabled: bool = True
    report_schedule_interval_minutes: int = 5
    digest_refresh_hour_utc: int = 6

    # Email (Brevo transactional API)
    brevo_api_key: Optional[str] = None
    brevo_sender_email: Optional[str] = None
    brevo_sender_name: str = "Pulse Analytics"

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
