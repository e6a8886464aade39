"""
Database session management.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from fleetcost.core.config import settings
from fleetcost.db.base import Base


def _connect_args(database_url: str) -> dict:
    """Socket timeouts for PyMySQL so a hung server cannot block a request."""
    if not database_url.startswith("mysql+pymysql"):
        return {}
    return {
        "connect_timeout": settings.DB_CONNECT_TIMEOUT,
        "read_timeout": settings.DB_READ_TIMEOUT,
        "write_timeout": settings.DB_WRITE_TIMEOUT,
    }


engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.DB_ECHO,
    pool_pre_ping=True,
    pool_recycle=3600,
    pool_timeout=settings.DB_POOL_TIMEOUT,
    connect_args=_connect_args(settings.DATABASE_URL),
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Session:
    """Dependency for getting database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Initialize database tables."""
    import fleetcost.models  # noqa: F401  register mappers
    Base.metadata.create_all(bind=engine)
