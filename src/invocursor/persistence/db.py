from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


DEFAULT_SQLITE_URL = "sqlite:///./invocursor.sqlite3"


def make_engine(db_url: str = DEFAULT_SQLITE_URL) -> Engine:
    if db_url in ("sqlite://", "sqlite:///:memory:"):
        # one shared connection so every thread sees the same database
        return create_engine(
            db_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if db_url.startswith("sqlite:"):
        return create_engine(
            db_url, connect_args={"check_same_thread": False}
        )
    return create_engine(db_url)


def make_session_factory(engine: Engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)
