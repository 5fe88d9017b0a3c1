"""
Configuration management for the Shipping Ledger
"""
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "Shipping Ledger"
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"
    log_dir: str = "logs"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Database
    database_url: str = "sqlite:///./shipledger.db"
    sql_echo: bool = False

    # Reporting
    revenue_statuses: str = "PAID,PARTIAL"  # Invoice statuses counted as revenue

    # Seed data
    samples_dir: str = "./samples"

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def revenue_status_list(self) -> List[str]:
        return [s.strip().upper() for s in self.revenue_statuses.split(",") if s.strip()]


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
