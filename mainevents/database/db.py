from sqlalchemy import StaticPool, create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from mainevents.core.config import DB_POOL_SIZE, DB_TIMEOUT_SECONDS, get_database_url


class Base(DeclarativeBase):
    pass


def build_engine(url: str):
    """Create the engine for ``url``; a bare ``sqlite://`` URL is the in-memory fallback store."""
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection so every session sees the same in-memory database
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)

    return create_engine(
        url,
        pool_size=DB_POOL_SIZE,
        max_overflow=0,
        pool_timeout=DB_TIMEOUT_SECONDS,
        pool_pre_ping=True,
    )


engine = build_engine(get_database_url())
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
