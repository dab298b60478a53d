from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./viewing_study.db"

    # API
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    SECRET_KEY: str = "your-super-secret-key-change-this"
    RESEARCHER_API_KEY: str = "researcher-key-change-this"

    # CORS
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Logging
    LOG_LEVEL: str = "INFO"

    # Study
    CONDITIONS: List[str] = ["switching", "non_switching"]
    EVENT_TYPES: List[str] = ["play", "pause", "switch", "complete"]
    MAX_BATCH_SIZE: int = 100

    class Config:
        env_file = ".env"
        extra = "allow"  # Allow extra environment variables


settings = Settings()
