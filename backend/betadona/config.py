"""
backend/betadona/config.py

Purpose:
    Central settings loading for the Betadona backend (database, auth,
    results provider, game rules and settlement scheduling).

Dependencies:
    - pydantic-settings
    - pathlib
"""

from pathlib import Path

from pydantic_settings import BaseSettings

# Prefer backend/.env, fallback to project-root .env.
_BACKEND_ENV_FILE = Path(__file__).resolve().parent.parent / ".env"
_ROOT_ENV_FILE = Path(__file__).resolve().parent.parent.parent / ".env"


class Settings(BaseSettings):
    MONGO_URI: str = "mongodb://localhost:27017/?replicaSet=rs0"
    MONGO_DB: str = "betadona"
    JWT_SECRET: str = "dev-only-jwt-secret-override-in-production"
    BACKEND_CORS_ORIGINS: str = "http://localhost:5173"
    LOG_LEVEL: str = "INFO"

    # JWT settings
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    # API-Football (fixtures + final scores)
    API_FOOTBALL_KEY: str = ""
    API_FOOTBALL_BASE_URL: str = "https://v3.football.api-sports.io"
    API_FOOTBALL_TIMEOUT_SECONDS: float = 15.0
    API_FOOTBALL_MAX_RETRIES: int = 3

    # Game rules
    WEEKLY_BUDGET_DEFAULT: float = 1000.0
    BET_CAP_PER_PERIOD: int = 5  # 0 disables the cap
    DEFAULT_LEAGUE_ID: int = 140  # LaLiga
    DEFAULT_LEAGUE_NAME: str = "LaLiga"

    # Settlement job
    SETTLEMENT_ENABLED: bool = True
    SETTLEMENT_LEAGUE_ID: int = 140
    SETTLEMENT_CRON_HOUR: int = 3
    SETTLEMENT_CRON_MINUTE: int = 0

    # Seed admin user (leave empty to skip seeding)
    SEED_ADMIN_USERNAME: str = ""
    SEED_ADMIN_PASSWORD: str = ""

    model_config = {
        "env_file": (str(_BACKEND_ENV_FILE), str(_ROOT_ENV_FILE)),
        "extra": "ignore",
    }


settings = Settings()
