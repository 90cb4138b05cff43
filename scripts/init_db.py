from __future__ import annotations

import argparse
from pathlib import Path
from typing import Optional

from alembic import command
from alembic.config import Config
from sqlalchemy import inspect

from escrutinio.db.engine import make_engine

PROJECT_ROOT = Path(__file__).resolve().parents[1]


def _alembic_config(database_url: Optional[str] = None) -> Config:
    alembic_cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    if database_url:
        alembic_cfg.cmd_opts = argparse.Namespace(x=[f"db_url={database_url}"])
    return alembic_cfg


def upgrade_db(target_revision: str = "head", database_url: Optional[str] = None) -> None:
    """Apply Alembic migrations up to the requested revision."""
    command.upgrade(_alembic_config(database_url), target_revision)


def print_tables(database_url: Optional[str] = None) -> None:
    """Print the tables of the configured database with their row counts."""
    engine = make_engine(database_url)
    insp = inspect(engine)
    with engine.connect() as conn:
        for table in sorted(insp.get_table_names()):
            count = conn.exec_driver_sql(f'SELECT COUNT(*) FROM "{table}"').scalar_one()
            print(f"{table}: {count} row(s)")


def main(argv: Optional[list[str]] = None) -> None:
    """Apply migrations (default to head) and report the resulting schema."""
    parser = argparse.ArgumentParser(description="Create or upgrade the scrutiny database.")
    parser.add_argument("--revision", default="head", help="Alembic revision to upgrade to")
    parser.add_argument("--db-url", default=None, help="Database URL (defaults to DB_URL)")
    args = parser.parse_args(argv)
    upgrade_db(args.revision, args.db_url)
    print_tables(args.db_url)


if __name__ == "__main__":
    main()
