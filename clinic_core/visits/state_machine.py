# clinic_core/visits/state_machine.py
"""
Visit lifecycle.

VisitStateMachine is the only code that writes Visit.status. Services load
one per operation, fire events on it, and call commit() once at the end of
their transaction. commit() is a compare-and-set on Visit.version, so a
concurrent writer that touched the same visit makes the whole transaction
roll back with ConcurrentModification.

Open work is tracked as a set of pending reasons derived from child rows on
every recompute; the displayed status is the highest-priority reason, or a
resting status when nothing is pending.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Iterable
from uuid import UUID

from django.utils import timezone

from clinic_core.common.concurrency import compare_and_set
from clinic_core.common.errors import InvalidTransition, InvalidVisitState
from clinic_core.common.events import publish_on_commit
from clinic_core.visits.models import Visit, VisitStatus

logger = logging.getLogger(__name__)


class PendingReason(str, enum.Enum):
    NURSE = "NURSE"
    LAB = "LAB"
    RADIOLOGY = "RADIOLOGY"


# Statuses the visit rests in when a reason set clears; everything else
# (SENT_TO_PHARMACY and the terminal statuses) is left alone by recompute.
DERIVED_STATUSES = frozenset({
    VisitStatus.WAITING_FOR_TRIAGE,
    VisitStatus.TRIAGED,
    VisitStatus.WAITING_FOR_DOCTOR,
    VisitStatus.UNDER_DOCTOR_REVIEW,
    VisitStatus.SENT_TO_LAB,
    VisitStatus.SENT_TO_RADIOLOGY,
    VisitStatus.SENT_TO_BOTH,
    VisitStatus.NURSE_SERVICES_PENDING,
    VisitStatus.NURSE_SERVICES_COMPLETED,
    VisitStatus.AWAITING_RESULTS_REVIEW,
})

PRE_CLINICIAN_STATUSES = frozenset({VisitStatus.WAITING_FOR_TRIAGE, VisitStatus.TRIAGED})

OPENABLE_STATUSES = frozenset({
    VisitStatus.TRIAGED,
    VisitStatus.WAITING_FOR_DOCTOR,
    VisitStatus.UNDER_DOCTOR_REVIEW,
    VisitStatus.NURSE_SERVICES_COMPLETED,
    VisitStatus.AWAITING_RESULTS_REVIEW,
})

FINALIZABLE_STATUSES = frozenset({
    VisitStatus.WAITING_FOR_DOCTOR,
    VisitStatus.UNDER_DOCTOR_REVIEW,
    VisitStatus.NURSE_SERVICES_COMPLETED,
    VisitStatus.AWAITING_RESULTS_REVIEW,
})


@dataclass(frozen=True)
class WorkflowSnapshot:
    status: str
    triaged: bool
    doctor_seen: bool
    results_ready: bool
    nurse_work_ready: bool
    reasons: frozenset


def pending_reasons(*, orders: Iterable, open_assignments: int = 0) -> frozenset:
    """
    orders: OrderSummary-like objects (order_type, is_open).
    """
    from clinic_core.orders.models import OrderType

    reasons = set()
    for order in orders:
        if not order.is_open:
            continue
        if order.order_type == OrderType.LAB:
            reasons.add(PendingReason.LAB)
        elif order.order_type == OrderType.RADIOLOGY:
            reasons.add(PendingReason.RADIOLOGY)
        elif order.order_type == OrderType.NURSE:
            reasons.add(PendingReason.NURSE)
    if open_assignments:
        reasons.add(PendingReason.NURSE)
    return frozenset(reasons)


def derive_status(snapshot: WorkflowSnapshot) -> str:
    """
    Pure status derivation.

    Pending work wins, nurse first. With nothing pending the visit rests in
    the first matching state.
    """
    if snapshot.status not in DERIVED_STATUSES:
        return snapshot.status

    reasons = snapshot.reasons
    if PendingReason.NURSE in reasons:
        return VisitStatus.NURSE_SERVICES_PENDING
    if PendingReason.LAB in reasons and PendingReason.RADIOLOGY in reasons:
        return VisitStatus.SENT_TO_BOTH
    if PendingReason.LAB in reasons:
        return VisitStatus.SENT_TO_LAB
    if PendingReason.RADIOLOGY in reasons:
        return VisitStatus.SENT_TO_RADIOLOGY

    if not snapshot.triaged:
        return VisitStatus.WAITING_FOR_TRIAGE
    if snapshot.results_ready:
        return VisitStatus.AWAITING_RESULTS_REVIEW
    if snapshot.doctor_seen:
        return VisitStatus.UNDER_DOCTOR_REVIEW
    if snapshot.nurse_work_ready:
        return VisitStatus.NURSE_SERVICES_COMPLETED
    return VisitStatus.WAITING_FOR_DOCTOR


class VisitStateMachine:
    """
    Per-operation handle on one visit. Not shared between transactions.
    """

    WRITABLE_FIELDS = (
        "status",
        "assigned_doctor_id",
        "triaged_at",
        "doctor_seen_at",
        "results_ready",
        "nurse_work_ready",
        "completed_at",
        "cancelled_at",
    )

    def __init__(self, visit: Visit):
        self.visit = visit
        self._read_version = visit.version
        self._initial_status = visit.status
        self._transitions: list[tuple[str, str]] = []
        self._actor_user_id: int | None = None

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------
    @classmethod
    def load(cls, *, tenant_id: UUID, facility_id: UUID, visit_id: UUID) -> "VisitStateMachine":
        visit = Visit.objects.get(id=visit_id, tenant_id=tenant_id, facility_id=facility_id)
        return cls(visit)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def order_summaries(self) -> list:
        from clinic_core.orders.aggregation import summarize
        from clinic_core.orders.models import BatchOrder

        qs = BatchOrder.objects.filter(
            tenant_id=self.visit.tenant_id,
            facility_id=self.visit.facility_id,
            visit_id=self.visit.id,
        ).prefetch_related("lines")
        return [summarize(b) for b in qs]

    def open_assignment_count(self) -> int:
        from clinic_core.nursing.models import AssignmentStatus, NurseServiceAssignment

        return NurseServiceAssignment.objects.filter(
            tenant_id=self.visit.tenant_id,
            facility_id=self.visit.facility_id,
            visit_id=self.visit.id,
            status=AssignmentStatus.PENDING,
        ).count()

    def snapshot(self) -> WorkflowSnapshot:
        v = self.visit
        return WorkflowSnapshot(
            status=v.status,
            triaged=v.triaged_at is not None,
            doctor_seen=v.doctor_seen_at is not None,
            results_ready=v.results_ready,
            nurse_work_ready=v.nurse_work_ready,
            reasons=pending_reasons(
                orders=self.order_summaries(),
                open_assignments=self.open_assignment_count(),
            ),
        )

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------
    def ensure_not_terminal(self) -> None:
        if self.visit.is_terminal:
            raise self._reject(InvalidVisitState(
                f"Visit is {self.visit.status}.",
                details={"visit_id": str(self.visit.id), "status": self.visit.status},
            ))

    def ensure_accepts_orders(self) -> None:
        """
        New orders, nurse assignments and prescriptions need a triaged visit
        that is with a clinician and whose diagnosis is not finalized.
        """
        self.ensure_not_terminal()
        if self.visit.triaged_at is None or self.visit.status in PRE_CLINICIAN_STATUSES:
            raise self._reject(InvalidVisitState(
                "Visit has not been triaged and handed to a clinician yet.",
                details={"visit_id": str(self.visit.id), "status": self.visit.status},
            ))
        if self.visit.status == VisitStatus.SENT_TO_PHARMACY:
            raise self._reject(InvalidVisitState(
                "Diagnosis is finalized; visit is waiting for pharmacy.",
                details={"visit_id": str(self.visit.id), "status": self.visit.status},
            ))

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------
    def as_actor(self, actor_user_id: int | None) -> "VisitStateMachine":
        self._actor_user_id = actor_user_id
        return self

    def record_triage(self) -> None:
        self.ensure_not_terminal()
        if self.visit.triaged_at is None:
            self.visit.triaged_at = timezone.now()
        if self.visit.status == VisitStatus.WAITING_FOR_TRIAGE:
            self._transition(VisitStatus.TRIAGED)
        self.recompute()

    def open(self) -> None:
        self.ensure_not_terminal()
        if self.visit.status not in OPENABLE_STATUSES:
            raise self._reject(InvalidTransition(
                f"Visit cannot be opened for review while {self.visit.status}.",
                details={"status": self.visit.status, "allowed": sorted(OPENABLE_STATUSES)},
            ))
        self.visit.doctor_seen_at = timezone.now()
        self.visit.results_ready = False
        self.visit.nurse_work_ready = False
        self.recompute()

    def investigation_resolved(self) -> None:
        """A LAB/RADIOLOGY batch reached a terminal aggregate (COMPLETED or CANCELLED)."""
        self.visit.results_ready = True
        self.recompute()

    def nurse_work_resolved(self) -> None:
        """A nurse assignment or NURSE batch completed."""
        self.visit.nurse_work_ready = True
        self.recompute()

    def recompute(self) -> str:
        new_status = derive_status(self.snapshot())
        if new_status != self.visit.status:
            self._transition(new_status)
        return self.visit.status

    def finalize(self, *, pending_prescriptions: bool) -> None:
        self.ensure_not_terminal()

        open_orders = [str(o.id) for o in self.order_summaries() if o.is_open]
        open_assignments = self.open_assignment_count()
        if open_orders or open_assignments:
            raise self._reject(InvalidVisitState(
                "Visit has unfinished orders or nurse services.",
                details={"open_orders": open_orders, "open_assignments": open_assignments},
            ))

        if self.visit.status not in FINALIZABLE_STATUSES:
            raise self._reject(InvalidVisitState(
                f"Visit cannot be finalized while {self.visit.status}.",
                details={"status": self.visit.status, "allowed": sorted(FINALIZABLE_STATUSES)},
            ))

        if pending_prescriptions:
            self._transition(VisitStatus.SENT_TO_PHARMACY)
        else:
            self.visit.completed_at = timezone.now()
            self._transition(VisitStatus.COMPLETED)

    def mark_dispensed(self) -> None:
        if self.visit.status != VisitStatus.SENT_TO_PHARMACY:
            raise self._reject(InvalidTransition(
                f"Dispensation can only complete a visit that is {VisitStatus.SENT_TO_PHARMACY}.",
                details={"status": self.visit.status},
            ))
        self.visit.completed_at = timezone.now()
        self._transition(VisitStatus.COMPLETED)

    def cancel(self) -> None:
        self.ensure_not_terminal()
        self.visit.cancelled_at = timezone.now()
        self._transition(VisitStatus.CANCELLED)

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------
    def _reject(self, exc):
        logger.warning("visit %s: rejected in %s: %s", self.visit.id, self.visit.status, exc.message)
        return exc

    def _transition(self, new_status: str) -> None:
        old = self.visit.status
        self.visit.status = new_status
        self._transitions.append((old, new_status))

    def commit(self) -> Visit:
        """
        Persist the visit with a compare-and-set on the version read at load.

        Called once per operation even when the status did not change, so
        concurrent child mutations on the same visit always conflict.
        """
        v = self.visit
        changes = {f: getattr(v, f) for f in self.WRITABLE_FIELDS}
        changes["updated_at"] = timezone.now()

        v.version = compare_and_set(Visit, pk=v.id, version=self._read_version, **changes)
        v.updated_at = changes["updated_at"]
        self._read_version = v.version

        for old, new in self._transitions:
            logger.info("visit %s: %s -> %s", v.id, old, new)
            publish_on_commit(
                "visit.status_changed",
                {
                    "tenant_id": str(v.tenant_id),
                    "facility_id": str(v.facility_id),
                    "visit_id": str(v.id),
                    "from_status": old,
                    "to_status": new,
                    "actor_user_id": self._actor_user_id,
                },
            )

        if (
            self._initial_status == VisitStatus.NURSE_SERVICES_PENDING
            and v.status != VisitStatus.NURSE_SERVICES_PENDING
            and not v.is_terminal
        ):
            publish_on_commit(
                "visit.nurse_services_cleared",
                {
                    "tenant_id": str(v.tenant_id),
                    "facility_id": str(v.facility_id),
                    "visit_id": str(v.id),
                },
            )

        self._initial_status = v.status
        self._transitions = []
        return v
