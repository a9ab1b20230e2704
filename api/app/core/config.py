from pydantic_settings import BaseSettings
from dotenv import load_dotenv
from pathlib import Path
import logging
import os

_logger = logging.getLogger(__name__)

# Load .env explicitly before creating Settings so os.getenv sees it too.
# Look for .env in api directory (parent of app directory), then the working directory
api_dir = Path(__file__).parent.parent.parent
env_path = api_dir / ".env"

if env_path.exists():
    load_dotenv(env_path, override=False)
    _logger.info(f"Loaded .env file from: {env_path}")
elif Path(".env").exists():
    load_dotenv(Path(".env"), override=False)
    _logger.info(f"Loaded .env file from: {Path('.env').absolute()}")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database; SQLite URLs are accepted for local runs
    database_url: str = ""

    # API
    api_v1_prefix: str = "/api/v1"

    # CORS
    cors_origins: list[str] = ["*"]

    # Spaced repetition defaults (SM-2 style)
    srs_min_ease: float = 1.3
    srs_initial_ease: float = 2.5
    srs_again_penalty: float = 0.2
    srs_hard_delta: float = -0.15
    srs_easy_delta: float = 0.15
    srs_max_interval_days: int = 36500

    # Review sessions
    session_max_cards: int = 50

    class Config:
        env_file = ".env"
        case_sensitive = False

    def __init__(self, **kwargs):
        # Deployment platforms export DATABASE_URL uppercase
        if not kwargs.get("database_url"):
            kwargs["database_url"] = os.getenv("DATABASE_URL", "")
        super().__init__(**kwargs)


# Create settings instance
settings = Settings()

# Validate required DATABASE_URL
if not settings.database_url:
    raise ValueError("DATABASE_URL environment variable is required")
