"""
Summarize orphaned ledger rows for manual reconciliation.

Orphans past the retry window are acknowledged to the provider and only show up
here and in the orderledger_orphaned_events_total counter.
"""
from __future__ import annotations

import argparse
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

from sqlalchemy.orm import Session

from orderledger.core.config import settings
from orderledger.db.session import SessionLocal
from orderledger.models.payment_event import PaymentEvent
from orderledger.repositories import ledger as ledger_repo
from orderledger.services.notifications.slack import post_to_slack


def collect_orphans(db: Session, *, since: datetime) -> dict[str, list[PaymentEvent]]:
    grouped: dict[str, list[PaymentEvent]] = {}
    for row in ledger_repo.list_orphans_since(db, since):
        grouped.setdefault(row.orphan_reason or "unknown", []).append(row)
    return grouped


def compose_report(grouped: dict[str, list[PaymentEvent]], *, since: datetime) -> str:
    total = sum(len(rows) for rows in grouped.values())
    lines = [f"Orphaned payment events since {since.isoformat()}: {total}"]
    for reason, rows in sorted(grouped.items(), key=lambda kv: len(kv[1]), reverse=True):
        types = Counter(r.event_type for r in rows)
        type_summary = ", ".join(f"{t}={n}" for t, n in types.most_common(3))
        sample = ", ".join(r.stripe_event_id for r in rows[:3])
        lines.append(f"- {reason}: {len(rows)} ({type_summary}) e.g. {sample}")
    return "\n".join(lines)


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="report_orphans")
    parser.add_argument("--hours", type=int, default=24, help="look-back window")
    args = parser.parse_args(argv)

    since = datetime.now(timezone.utc) - timedelta(hours=args.hours)
    with SessionLocal() as db:
        grouped = collect_orphans(db, since=since)
    report = compose_report(grouped, since=since)

    if not grouped:
        print(report)
        return 0
    if settings.slack_webhook_url:
        post_to_slack(report)
        print("Orphan report sent to Slack")
    else:
        print(report)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
