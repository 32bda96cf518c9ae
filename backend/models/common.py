"""Common database utilities and base models"""

import logging
from contextlib import contextmanager
from typing import Generator

import sqlmodel
from fastapi import Request
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlmodel import Session, create_engine

logger = logging.getLogger("campus.db")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Database:
    """Owns the engine: built once at startup and handed to whoever needs sessions."""

    def __init__(self, url: str, **engine_kwargs):
        self.url = url
        self.engine_kwargs = engine_kwargs
        self._engine: Engine | None = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Database is not open")
        return self._engine

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    def open(self) -> "Database":
        if self._engine is None:
            kwargs = dict(self.engine_kwargs)
            if self.url.startswith("sqlite"):
                kwargs.setdefault("connect_args", {"check_same_thread": False})
            self._engine = create_engine(self.url, **kwargs)
            logger.debug(f"Database opened on {self._engine.url!r}")
        return self

    def health_check(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            logger.debug("Database closed")

    def create_all(self) -> None:
        # Ensure models are imported so tables are registered in SQLModel.metadata
        import models  # noqa: F401

        sqlmodel.SQLModel.metadata.create_all(self.engine)

    def session(self) -> Session:
        return Session(self.engine, expire_on_commit=False)


def get_session(request: Request) -> Generator[Session, None, None]:  # pragma: no cover
    """Get database session for FastAPI dependency, always closes session."""
    session = request.app.state.db.session()
    try:
        yield session
    finally:
        session.close()


@contextmanager
def atomic(session: Session) -> Generator[Session, None, None]:
    """Commit everything done in the block, or roll all of it back."""
    try:
        yield session
        session.commit()
    except Exception as e:
        logger.debug(f"Rolling back transaction - {e!r}")
        session.rollback()
        raise


def parse_bool(bool_str: str | bool):
    if isinstance(bool_str, str):
        return bool_str.lower() in ("true", "1")
    return bool(bool_str)
