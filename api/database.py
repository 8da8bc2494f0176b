# Database: SQLAlchemy engine, session factory and declarative base

from pathlib import Path
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .settings import settings

Base = declarative_base()


def make_engine(url: str) -> Engine:
    """Create an engine; SQLite files get their parent folder created."""
    connect_args = {}
    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite":
        connect_args["check_same_thread"] = False
        if parsed.database and parsed.database != ":memory:":
            Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url, connect_args=connect_args)


engine = make_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db(bind: Engine = engine) -> None:
    """Create all tables (no migrations)."""
    from . import models  # noqa: F401  (register mappers)

    Base.metadata.create_all(bind=bind)


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
