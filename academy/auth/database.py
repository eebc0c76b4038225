"""
Academy Admin - Record Store

Engine construction and table creation for the user, session, invitation
and reset-token tables. SQLite (development, tests) shares one connection
through ``StaticPool`` so in-memory databases survive across sessions;
PostgreSQL gets a regular connection pool.
"""

from typing import Callable, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from academy.config import settings


DEFAULT_DATABASE_URL = "sqlite:///./academy.db"


def get_database_url() -> str:
    return settings.DATABASE_URL or DEFAULT_DATABASE_URL


def get_engine(database_url: Optional[str] = None, echo: bool = False) -> Engine:
    url = database_url or get_database_url()

    if url.startswith("sqlite"):
        return create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    return create_engine(
        url,
        echo=echo,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
    )


def init_db(engine: Engine) -> None:
    """
    Create missing tables and indexes, including the partial unique index
    on pending invitations. Idempotent.
    """
    # Registers the tables on SQLModel.metadata
    from academy.auth.models import Invitation, PasswordResetToken, Session, User  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_session_factory(engine: Engine) -> Callable[[], Session]:
    def session_factory() -> Session:
        return Session(engine)

    return session_factory
