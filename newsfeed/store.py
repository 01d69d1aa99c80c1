"""
store.py
========
Database gateway for the service.

1) Builds the engine from ``config.DB_URL``.
2) Creates tables (once) from the SQLModel classes in models.py.
3) Hands out Sessions (one unit of work each).
"""

from sqlmodel import SQLModel, Session, create_engine

from .config import DB_URL

# SQLite connections are shared with the scheduler thread and the
# threadpool FastAPI runs sync endpoints on.
_connect_args = {"check_same_thread": False} if DB_URL.startswith("sqlite") else {}

engine = create_engine(DB_URL, echo=False, connect_args=_connect_args)


def init_db() -> None:
    """
    Create all tables declared in models.py.

    Safe to call on every startup; it only creates missing tables.
    """
    from . import models  # noqa: F401  (import just to register models with SQLModel)

    SQLModel.metadata.create_all(engine)


def reset_db() -> None:
    """Drop and recreate every table. Used by the test suite."""
    from . import models  # noqa: F401

    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)


def get_session() -> Session:
    """
    Open a Session bound to our engine.

    Usage:
      with get_session() as session:
          session.add(obj)
          session.commit()
    """
    return Session(engine)
