# clinic_core/worklist/priority.py
"""
Clinician worklist ranking.

rank() is a pure function of visit snapshots: the same input always yields
the same order, and nothing about a ranking is stored.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional

from clinic_core.visits.models import Condition, VisitStatus

WORKLIST_STATUSES = frozenset({
    VisitStatus.WAITING_FOR_DOCTOR,
    VisitStatus.AWAITING_RESULTS_REVIEW,
    VisitStatus.NURSE_SERVICES_COMPLETED,
})

TIER_URGENT = 1
TIER_RESULTS_READY = 2
TIER_NEW_CONSULTATION = 3
TIER_OTHER = 4

TIER_LABELS = {
    TIER_URGENT: "urgent",
    TIER_RESULTS_READY: "results_ready",
    TIER_NEW_CONSULTATION: "new_consultation",
    TIER_OTHER: "other",
}


@dataclass(frozen=True)
class VisitSnapshot:
    id: object
    status: str
    created_at: datetime
    latest_condition: Optional[str] = None
    doctor_seen: bool = False
    order_statuses: tuple = field(default_factory=tuple)


def tier(snapshot: VisitSnapshot) -> int:
    if snapshot.latest_condition == Condition.CRITICAL:
        return TIER_URGENT
    if snapshot.status in (VisitStatus.AWAITING_RESULTS_REVIEW, VisitStatus.NURSE_SERVICES_COMPLETED):
        return TIER_RESULTS_READY
    if snapshot.status == VisitStatus.WAITING_FOR_DOCTOR and not snapshot.doctor_seen:
        return TIER_NEW_CONSULTATION
    return TIER_OTHER


def sort_key(snapshot: VisitSnapshot) -> tuple:
    return (tier(snapshot), snapshot.created_at, str(snapshot.id))


def rank(snapshots: Iterable[VisitSnapshot]) -> list[VisitSnapshot]:
    """
    Worklist members ordered by (tier, arrival, id). Non-worklist visits are dropped.
    """
    return sorted((s for s in snapshots if s.status in WORKLIST_STATUSES), key=sort_key)
