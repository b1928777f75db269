from pathlib import Path
from typing import Generator

from fastapi import Request
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine, text


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """Create the SQLAlchemy engine for a database URL"""
    is_sqlite = database_url.startswith("sqlite")
    connect_args = {"check_same_thread": False} if is_sqlite else {}
    kwargs = {}

    if is_sqlite:
        db_path = database_url.replace("sqlite:///", "", 1)
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # In-memory databases must share one connection across sessions
            kwargs["poolclass"] = StaticPool
        else:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    return create_engine(database_url, echo=echo, connect_args=connect_args, **kwargs)


def get_session(request: Request) -> Generator[Session, None, None]:
    """Get database session bound to the serving app's engine"""
    with Session(request.app.state.engine) as session:
        yield session


def init_db(engine: Engine) -> None:
    """Create tables for every imported SQLModel table"""
    # Built-in auth tables must be registered with SQLModel metadata
    from warp_server.models.session import SessionRecord  # noqa: F401
    from warp_server.models.user import User  # noqa: F401

    SQLModel.metadata.create_all(engine)


def ping(engine: Engine) -> int:
    """Liveness check; raises when the database is unreachable"""
    with Session(engine) as session:
        return session.execute(text("SELECT 1+1 AS result")).scalar_one()
