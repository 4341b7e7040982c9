from typing import Final

ORDER_STATUS_PENDING: Final[str] = "pending"
ORDER_STATUS_PAID: Final[str] = "paid"
ORDER_STATUS_FAILED: Final[str] = "failed"
ORDER_STATUS_REFUNDED: Final[str] = "refunded"

# target status -> the only statuses it may be reached from
LEGAL_SOURCE_STATUSES: Final[dict[str, frozenset[str]]] = {
    ORDER_STATUS_PAID: frozenset({ORDER_STATUS_PENDING}),
    ORDER_STATUS_FAILED: frozenset({ORDER_STATUS_PENDING}),
    ORDER_STATUS_REFUNDED: frozenset({ORDER_STATUS_PAID}),
}
