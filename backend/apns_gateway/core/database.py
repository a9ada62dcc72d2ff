"""Database connection and session management"""
import os
from contextlib import contextmanager
from typing import Callable, Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from apns_gateway.core.config import settings


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create a SQLAlchemy engine for the token registry.

    SQLite requires check_same_thread=False because registry calls arrive
    from request handlers and background delivery tasks alike. The parent
    directory of a file-backed SQLite database is created on demand.

    Args:
        database_url: SQLAlchemy database URL
        echo: Log SQL statements

    Returns:
        Configured Engine
    """
    engine_kwargs = {"echo": echo}

    if database_url.startswith("sqlite"):
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        db_path = database_url.split("///", 1)[-1]
        if db_path and db_path != ":memory:":
            parent = os.path.dirname(db_path)
            if parent:
                os.makedirs(parent, exist_ok=True)

    return create_engine(database_url, **engine_kwargs)


engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for ORM models
Base = declarative_base()


@contextmanager
def get_db_session(
    session_factory: Callable[[], Session] = None,
) -> Generator[Session, None, None]:
    """
    Context manager for database sessions outside request handlers.

    Usage:
        with get_db_session() as db:
            db.add(row)
            db.commit()

    Automatically handles:
    - Session creation
    - Rollback on exception
    - Session cleanup (close)

    Args:
        session_factory: Optional factory; defaults to SessionLocal
    """
    db = (session_factory or SessionLocal)()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
