"""Engine and session factory.

The workflow engine never imports this module; it receives a ``Session``
from the caller (API dependency, worker task, or test fixture).
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from passport.core.config import get_settings


def build_engine(database_url: str) -> Engine:
    """Create an engine with pool settings suited to the backend."""
    settings = get_settings()
    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False})
    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_recycle=settings.db_pool_recycle,
    )


engine = build_engine(get_settings().database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
