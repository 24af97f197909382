"""
Configuration management using Pydantic Settings
"""
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""
    
    # Database
    DATABASE_URL: str = "sqlite:///./gyaan.db"
    
    # Redis (empty string disables Redis and uses the in-process cache)
    REDIS_URL: str = "redis://redis:6379/0"
    
    # Application
    APP_NAME: str = "Gyaan Progress Service"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8000"]
    
    # Rate Limiting
    RATE_LIMIT_PER_MINUTE: int = 120
    RATE_LIMIT_PER_HOUR: int = 3000
    RATE_LIMIT_USERS_PER_IP: int = 10  # IP budget multiplier for user-scoped paths
    
    # Metrics
    METRICS_CACHE_TTL: int = 300  # 5 minutes
    TIMEZONE: str = "Asia/Kolkata"
    
    # Study time
    TRACKER_CACHE_TTL: int = 40 * 24 * 3600  # outlives one reporting month
    TRACKER_TICK_SECONDS: int = 60
    DEFAULT_TIMER_MINUTES: int = 25
    
    # Logging
    LOG_LEVEL: str = "INFO"
    
    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
