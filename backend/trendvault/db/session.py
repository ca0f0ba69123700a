"""Database session management"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from trendvault.core.config import settings
from trendvault.models.base import Base

# SQLite needs cross-thread access for the threadpool FastAPI runs sync work on
_connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    settings.DATABASE_URL,
    connect_args=_connect_args,
    pool_pre_ping=True,
    pool_recycle=3600
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """Dependency for FastAPI endpoints"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Initialize database (create all tables)"""
    import trendvault.models  # noqa: F401 - registers models with Base.metadata
    Base.metadata.create_all(bind=engine)
