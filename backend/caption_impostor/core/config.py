"""
Application configuration
"""

from typing import List, Optional
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    """Application settings"""

    # Basics
    APP_NAME: str = "Caption Impostor"
    VERSION: str = "1.0.0"
    DEBUG: bool = True

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8001
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # Database
    DATABASE_URL: str = "sqlite:///./caption_impostor.db"
    SEED_IMAGE_CATALOG: bool = True

    # Game rules
    MIN_PLAYERS: int = 1  # 1 allows solo games while testing
    TOTAL_ROUNDS: int = 6
    CAPTION_SECONDS: int = 20
    VOTING_SECONDS: int = 30
    MAX_CAPTION_LENGTH: int = 300
    IMAGE_PAIR_MAX_ATTEMPTS: int = 100
    ALIAS_MAX_ATTEMPTS: int = 50
    ALIAS_INSERT_RETRIES: int = 3

    # Presence and cleanup
    ROOM_INACTIVE_HOURS: int = 1
    MAX_ROOMS_PER_SWEEP: int = 50
    STALE_LOBBY_MINUTES: int = 5
    PLAYER_STALE_SECONDS: int = 90
    CLEANUP_OLDER_THAN_HOURS: int = 24
    SCHEDULER_INTERVAL_SECONDS: int = 300  # 0 disables the in-process loop
    SCHEDULER_API_KEY: Optional[str] = None
    ADMIN_API_KEY: Optional[str] = None

    # Client coordinator
    CLIENT_POLL_INTERVAL: float = 2.0
    CLIENT_REQUEST_TIMEOUT: float = 10.0
    HOST_ACTION_COOLDOWN: float = 3.0
    CLIENT_PLAYER_HEARTBEAT_SECONDS: float = 30.0
    CLIENT_ROOM_HEARTBEAT_SECONDS: float = 60.0

    class Config:
        env_file = ".env"
        case_sensitive = True

# Global settings instance
settings = Settings()
