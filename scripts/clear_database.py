#!/usr/bin/env python3
"""Delete every row from the application tables, keeping user accounts."""
import argparse
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from sqlalchemy import delete, func, select  # noqa: E402

from fleetledger.core.logger import get_logger, init_logging  # noqa: E402
from fleetledger.db.engine import create_sync_engine  # noqa: E402
from fleetledger.models import Base, User  # noqa: E402

logger = get_logger(__name__)


def is_database_empty(engine) -> bool:
    """Check whether any non-user table holds rows."""
    with engine.connect() as connection:
        for table in Base.metadata.sorted_tables:
            if table.name == User.__tablename__:
                continue
            count = connection.execute(select(func.count()).select_from(table)).scalar()
            if count:
                logger.info(f"Found {count} rows in {table.name}, database is not empty")
                return False
    logger.info("Database appears to be empty")
    return True


def clear_database(url: str | None = None, *, include_users: bool = False) -> None:
    """Clear all data from the tables in reverse dependency order."""
    engine = create_sync_engine(url)
    if not include_users and is_database_empty(engine):
        logger.info("Database is empty, skipping clear operation")
        return

    with engine.begin() as connection:
        for table in reversed(Base.metadata.sorted_tables):
            if table.name == User.__tablename__ and not include_users:
                continue
            result = connection.execute(delete(table))
            logger.info(f"Cleared {result.rowcount} rows from {table.name}")

    logger.info("Database clearing complete")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--url", help="SQLAlchemy URL; defaults to the configured database")
    parser.add_argument("--include-users", action="store_true", help="Also delete user accounts")
    args = parser.parse_args()
    init_logging(app_name="clear-database")
    clear_database(args.url, include_users=args.include_users)
