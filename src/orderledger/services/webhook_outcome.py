from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from orderledger.core.stripe_events import OrphanReason


class OutcomeKind(str, Enum):
    PROCESSED = "processed"
    DUPLICATE = "duplicate"
    REPAIRED = "repaired"
    ORPHANED = "orphaned"
    LEDGER_FAILURE = "ledger_failure"


@dataclass(frozen=True)
class ProcessingOutcome:
    kind: OutcomeKind
    orphan_reason: Optional[OrphanReason] = None
    order_id: Optional[str] = None
    transitions: int = 0
