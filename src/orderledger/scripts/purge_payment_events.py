"""
Purge PaymentEvent ledger rows.

  retain: python -m orderledger.scripts.purge_payment_events [retain]
  erase:  PURGE_CONFIRM=YES python -m orderledger.scripts.purge_payment_events erase <user_id>

retain deletes rows older than PAYMENT_EVENT_RETENTION_DAYS. erase deletes the
rows tied to one user's orders (right to erasure). Orders are never deleted.
"""
from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Literal, Optional

from sqlalchemy.orm import Session

from orderledger.core.config import settings
from orderledger.db.session import SessionLocal
from orderledger.repositories import ledger as ledger_repo
from orderledger.repositories import orders as order_repo

PurgeMode = Literal["retain", "erase"]


@dataclass(frozen=True)
class PurgeArgs:
    mode: PurgeMode
    user_id: Optional[str]


def parse_args(argv: Sequence[str], default_mode: PurgeMode = "retain") -> PurgeArgs:
    parser = argparse.ArgumentParser(prog="purge_payment_events")
    parser.add_argument("action", nargs="?", default=None)
    parser.add_argument("user_id", nargs="?", default=None)
    ns = parser.parse_args(list(argv))

    mode: PurgeMode = ns.action if ns.action in ("retain", "erase") else default_mode
    user_id = ns.user_id if mode == "erase" else None
    return PurgeArgs(mode=mode, user_id=user_id)


def is_erase_allowed(environ: Mapping[str, str] = os.environ) -> bool:
    return environ.get("PURGE_CONFIRM") == "YES"


def purge_expired(db: Session, *, retention_days: int, now: datetime) -> int:
    cutoff = now - timedelta(days=retention_days)
    return ledger_repo.delete_received_before(db, cutoff)


def purge_by_user_id(db: Session, user_id: str) -> int:
    order_ids = order_repo.list_ids_for_user(db, user_id)
    return ledger_repo.delete_for_orders(db, order_ids)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv, settings.payment_event_retention_mode)

    if args.mode == "erase":
        if not is_erase_allowed():
            print("Erase mode requires PURGE_CONFIRM=YES.", file=sys.stderr)
            return 1
        if not args.user_id or not args.user_id.strip():
            print("Erase mode requires a user_id argument.", file=sys.stderr)
            return 1

    with SessionLocal() as db:
        if args.mode == "retain":
            days = settings.payment_event_retention_days
            count = purge_expired(db, retention_days=days, now=datetime.now(timezone.utc))
            print(f"Purge (retain): deleted {count} PaymentEvent(s) older than {days} days")
        else:
            user_id = args.user_id.strip()
            count = purge_by_user_id(db, user_id)
            print(f"Purge (erase): deleted {count} PaymentEvent(s) for user {user_id}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
