"""
Application configuration settings
FILE: app/core/config.py
"""
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # MongoDB Configuration
    mongodb_url: str = "mongodb://localhost:27017"
    database_name: str = "certprep"

    # CORS
    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://localhost:4000",
    ]

    # Test session policy fallbacks (used when the exam does not define them)
    default_time_limit_minutes: int = 90
    default_max_questions: int = 75
    default_passing_score: int = 70

    # Allowed difference between client and server timers before we warn
    time_drift_tolerance_seconds: int = 30

    # History pagination
    history_default_limit: int = 20
    history_max_limit: int = 50

    # Study "weak_areas" mode
    weak_area_accuracy_threshold: int = 70

    class Config:
        env_file = ".env"
        case_sensitive = False  # This allows case-insensitive matching
        extra = "allow"  # This allows extra fields


settings = Settings()
