#!/usr/bin/env python3
"""Create the schema and seed the first super admin account."""
from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from sqlalchemy import select  # noqa: E402

from fleetledger.core.logger import get_logger, init_logging  # noqa: E402
from fleetledger.core.security import hash_password  # noqa: E402
from fleetledger.db.engine import create_sync_engine  # noqa: E402
from fleetledger.db.session import session_scope  # noqa: E402
from fleetledger.models import Base, User, UserRole  # noqa: E402

logger = get_logger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--url", help="SQLAlchemy URL; defaults to the configured database")
    parser.add_argument(
        "--admin-username",
        default=os.getenv("ADMIN_USERNAME", "admin"),
        help="Username of the super admin to create (env ADMIN_USERNAME)",
    )
    parser.add_argument(
        "--admin-password",
        default=os.getenv("ADMIN_PASSWORD"),
        help="Password of the super admin (env ADMIN_PASSWORD)",
    )
    parser.add_argument("--skip-admin", action="store_true", help="Only create the tables")
    return parser.parse_args(argv)


def create_schema(url: str | None = None) -> None:
    engine = create_sync_engine(url)
    Base.metadata.create_all(engine)
    logger.info("Schema created", extra={"tables": len(Base.metadata.tables)})


def seed_admin(username: str, password: str, url: str | None = None) -> bool:
    """Create the super admin unless a user with that name already exists."""

    name = username.strip().lower()
    with session_scope(url) as session:
        existing = session.scalars(select(User).where(User.username == name)).first()
        if existing is not None:
            logger.info("Admin user already present", extra={"username": name})
            return False
        session.add(
            User(
                username=name,
                password_hash=hash_password(password),
                role=UserRole.SUPER_ADMIN.value,
                is_active=True,
            )
        )
    logger.info("Super admin created", extra={"username": name})
    return True


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    create_schema(args.url)
    if args.skip_admin:
        return 0
    if not args.admin_password:
        logger.error("An admin password is required (--admin-password or ADMIN_PASSWORD)")
        return 1
    seed_admin(args.admin_username, args.admin_password, args.url)
    return 0


if __name__ == "__main__":
    init_logging(app_name="init-db")
    raise SystemExit(main())
