from sqlmodel import SQLModel, create_engine, Session
from sqlalchemy.pool import StaticPool
from app.core.config import settings
import logging

logger = logging.getLogger(__name__)


def normalize_database_url(db_url: str) -> str:
    """SQLAlchemy prefers postgresql:// over the postgres:// scheme hosting providers hand out."""
    if db_url.startswith("postgres://"):
        return db_url.replace("postgres://", "postgresql://", 1)
    return db_url


def build_engine(db_url: str):
    """Create an engine for the given URL.

    SQLite (used for local runs and tests) gets a single shared connection so
    an in-memory database survives across sessions; anything else gets a
    small pre-pinged connection pool.
    """
    db_url = normalize_database_url(db_url)
    if db_url.startswith("sqlite"):
        return create_engine(
            db_url,
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(
        db_url,
        echo=False,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=5,
        max_overflow=10,
    )


logger.info(f"Connecting to database: {normalize_database_url(settings.database_url)[:20]}...")

engine = build_engine(settings.database_url)


def get_session():
    """Dependency for getting database sessions."""
    with Session(engine) as session:
        yield session


def init_db(bind=None):
    """Initialize database tables."""
    # Import models so their tables are registered on the metadata
    from app import models  # noqa: F401
    SQLModel.metadata.create_all(bind if bind is not None else engine)
