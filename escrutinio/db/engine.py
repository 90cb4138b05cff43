import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from sqlalchemy import MetaData, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from .utils import resolve_sqlite_url

load_dotenv()
# Repo root; relative SQLite paths in DB_URL are resolved against it
ROOT_DIR = Path(__file__).resolve().parents[2]
DEFAULT_SQLITE_URL = resolve_sqlite_url(
    os.getenv("DB_URL", "sqlite:///./dev.db"), ROOT_DIR
)


def make_engine(database_url: Optional[str] = None, echo: bool = False) -> Engine:
    """Create the engine scrutiny results are stored with.

    SQLite connections get ``PRAGMA foreign_keys=ON`` so tier and agency rows
    follow their run on delete.
    """
    url = database_url or DEFAULT_SQLITE_URL
    engine = create_engine(url, echo=echo, future=True)
    if engine.dialect.name == "sqlite":

        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def get_sessionmaker(engine: Engine) -> sessionmaker:
    # Runs and tiers are read back after the workflow commits
    return sessionmaker(bind=engine, expire_on_commit=False, future=True)


def reset_schema(engine: Engine, metadata: MetaData) -> None:
    """Drop and recreate every table of ``metadata``. Development use only."""
    with engine.begin() as conn:
        metadata.drop_all(bind=conn)
        metadata.create_all(bind=conn)
