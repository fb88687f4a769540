"""Simple database connectivity check."""
from __future__ import annotations

import sys
from pathlib import Path

from sqlalchemy import inspect, text

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from fleetledger.core.config import get_settings  # noqa: E402  (import after sys.path manipulation)
from fleetledger.db.engine import create_sync_engine  # noqa: E402
from fleetledger.models import Base  # noqa: E402

settings = get_settings()
engine = create_sync_engine()


def main() -> None:
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
        present = set(inspect(conn).get_table_names())
    expected = set(Base.metadata.tables)
    print(f"✅ Connected to {settings.database.masked_url} via {engine.dialect.name}")
    missing = sorted(expected - present)
    if missing:
        print("Missing tables: " + ", ".join(missing))
    else:
        print(f"All {len(expected)} application tables present")


if __name__ == "__main__":
    main()
