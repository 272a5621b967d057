from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from partassist.core.config import settings
from partassist.storage.db_models import Base


def create_db_engine(url: str = settings.DATABASE_URL, echo: bool = settings.DATABASE_ECHO) -> Engine:
    """
    Create an engine for ``url``.

    SQLite connections are shared with worker threads (store calls run via
    asyncio.to_thread), so the same-thread check is disabled for them.
    """
    if url.startswith("sqlite"):
        return create_engine(url, echo=echo, connect_args={"check_same_thread": False})
    return create_engine(
        url,
        echo=echo,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=5,
        max_overflow=10,
    )


engine = create_db_engine()

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db_session():
    """
    Returns a new database session.
    Remember to close the session after use.
    """
    return SessionLocal()


def init_db(bind: Engine = engine) -> None:
    """Create any missing tables."""
    Base.metadata.create_all(bind=bind)
