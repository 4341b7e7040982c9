"""
Create the ledger tables straight from the ORM metadata (local development).

Production schemas are managed by alembic; this refuses to run there.
"""
from __future__ import annotations

import sys

from orderledger.core.config import settings
from orderledger.db.init_db import create_all


def main() -> int:
    if settings.is_production:
        print("init_db is for local use; run `alembic upgrade head` in production.", file=sys.stderr)
        return 1

    created = create_all()
    if created:
        print(f"Created tables: {', '.join(sorted(created))}")
    else:
        print("All tables already exist")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
