# clinic_core/orders/aggregation.py
"""
The one canonical "is this order done" computation.

Everything that needs a BatchOrder status (state machine guards, the
medication gate, the worklist, serializers) calls aggregate_status();
nothing stores the result.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from clinic_core.orders.models import OrderLineStatus, OrderStatus

# Forward-only progression for order lines. CANCELLED is reachable from any
# non-terminal status and sits outside the ordering.
LINE_FLOW = (
    OrderLineStatus.PENDING,
    OrderLineStatus.QUEUED,
    OrderLineStatus.IN_PROGRESS,
    OrderLineStatus.COMPLETED,
)

TERMINAL_LINE_STATUSES = frozenset({OrderLineStatus.COMPLETED, OrderLineStatus.CANCELLED})
TERMINAL_ORDER_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})


def is_line_terminal(status: str) -> bool:
    return status in TERMINAL_LINE_STATUSES


def is_order_terminal(status: str) -> bool:
    return status in TERMINAL_ORDER_STATUSES


def can_transition(current: str, new: str) -> bool:
    """
    True iff `current -> new` is a legal OrderLine edge:
    strictly forward along LINE_FLOW, or to CANCELLED from a non-terminal status.
    """
    if is_line_terminal(current):
        return False
    if new == OrderLineStatus.CANCELLED:
        return True
    if new not in LINE_FLOW:
        return False
    return LINE_FLOW.index(new) > LINE_FLOW.index(current)


def aggregate_status(statuses: Iterable[str]) -> str:
    """
    Roll line statuses up into one BatchOrder status.

    - no lines, or only CANCELLED lines -> CANCELLED
    - every live line COMPLETED         -> COMPLETED
    - every live line PENDING           -> PENDING
    - anything else                     -> IN_PROGRESS
    """
    live = [s for s in statuses if s != OrderLineStatus.CANCELLED]

    if not live:
        return OrderStatus.CANCELLED
    if all(s == OrderLineStatus.COMPLETED for s in live):
        return OrderStatus.COMPLETED
    if all(s == OrderLineStatus.PENDING for s in live):
        return OrderStatus.PENDING
    return OrderStatus.IN_PROGRESS


def resolved_at(lines) -> Optional[datetime]:
    """
    Latest completion time of a resolved batch, None while it is still open.
    """
    lines = list(lines)
    if not is_order_terminal(aggregate_status(line.status for line in lines)):
        return None
    stamps = [line.completed_at for line in lines if line.completed_at]
    return max(stamps) if stamps else None


@dataclass(frozen=True)
class OrderSummary:
    """
    Read-only view of a BatchOrder used by the gate, the state machine and the worklist.
    """
    id: object
    order_type: str
    status: str

    @property
    def is_open(self) -> bool:
        return not is_order_terminal(self.status)


def summarize(batch_order) -> OrderSummary:
    return OrderSummary(
        id=batch_order.id,
        order_type=batch_order.order_type,
        status=aggregate_status(line.status for line in batch_order.lines.all()),
    )
