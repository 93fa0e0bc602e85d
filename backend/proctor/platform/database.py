import os

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from .config import settings

# Prefer public DB URL when set (so a local shell can reach the hosted Postgres)
_database_url = os.environ.get("DATABASE_PUBLIC_URL") or settings.DATABASE_URL

_engine_kw: dict = {}
if "sqlite" in _database_url:
    # Debounce timers append events from their own threads
    _engine_kw = {"connect_args": {"check_same_thread": False}}
else:
    _engine_kw = {"pool_pre_ping": True, "pool_size": 10, "max_overflow": 20}
engine = create_engine(_database_url, **_engine_kw)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """FastAPI dependency that yields a database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


class Base(DeclarativeBase):
    pass
