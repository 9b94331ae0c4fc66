# clinic_core/pharmacy/gate.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from clinic_core.orders.models import INVESTIGATION_TYPES, OrderStatus


@dataclass(frozen=True)
class GateDecision:
    allowed: bool
    reason: str = ""
    outstanding: tuple = field(default_factory=tuple)

    def as_dict(self) -> dict:
        return {
            "allowed": self.allowed,
            "reason": self.reason,
            "outstanding": list(self.outstanding),
        }


def evaluate(orders: Iterable) -> GateDecision:
    """
    Medication ordering is allowed iff every LAB/RADIOLOGY batch of the visit
    has aggregate COMPLETED. Cancelled batches count as resolved. A visit with
    no investigations passes.

    orders: OrderSummary-like objects (order_type, status).
    """
    outstanding = set()
    for order in orders:
        if order.order_type not in INVESTIGATION_TYPES:
            continue
        if order.status in (OrderStatus.COMPLETED, OrderStatus.CANCELLED):
            continue
        outstanding.add(str(order.order_type))

    if not outstanding:
        return GateDecision(allowed=True)

    names = tuple(sorted(outstanding))
    return GateDecision(
        allowed=False,
        reason="Pending results: " + ", ".join(names),
        outstanding=names,
    )
