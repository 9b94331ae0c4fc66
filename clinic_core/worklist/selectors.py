# clinic_core/worklist/selectors.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from django.db import transaction
from django.db.models import OuterRef, Q, Subquery

from clinic_core.orders.aggregation import summarize
from clinic_core.visits.models import Visit, VitalSigns
from clinic_core.worklist.priority import TIER_LABELS, WORKLIST_STATUSES, VisitSnapshot, rank, tier


@dataclass(frozen=True)
class VisitSummary:
    id: UUID
    patient_id: UUID
    status: str
    is_urgent: bool
    reason: str
    assigned_doctor_id: Optional[int]
    created_at: datetime
    latest_condition: Optional[str]
    doctor_seen: bool
    order_statuses: tuple
    tier: int
    tier_label: str


class WorklistSelectors:
    @staticmethod
    def snapshots(*, tenant_id: UUID, facility_id: UUID, doctor_id: int | None = None) -> dict:
        """
        Worklist candidates keyed by visit id.

        Everything rank() uses (status, arrival, latest condition, doctor
        seen) comes from one statement, so the ordering reflects a single
        snapshot. order_statuses is display-only; its prefetch runs in the
        same transaction but may see a batch change committed in between.

        With doctor_id, only visits assigned to that doctor or not yet
        assigned to anyone are returned.
        """
        latest_condition = (
            VitalSigns.objects.filter(visit_id=OuterRef("pk"))
            .order_by("-created_at", "-id")
            .values("condition")[:1]
        )
        qs = (
            Visit.objects.filter(
                tenant_id=tenant_id,
                facility_id=facility_id,
                status__in=WORKLIST_STATUSES,
            )
            .annotate(latest_condition=Subquery(latest_condition))
            .prefetch_related("batch_orders__lines")
        )
        if doctor_id is not None:
            qs = qs.filter(Q(assigned_doctor_id=doctor_id) | Q(assigned_doctor_id__isnull=True))

        out = {}
        with transaction.atomic():
            visits = list(qs)
        for v in visits:
            snap = VisitSnapshot(
                id=v.id,
                status=v.status,
                created_at=v.created_at,
                latest_condition=v.latest_condition,
                doctor_seen=v.doctor_seen_at is not None,
                order_statuses=tuple(summarize(b).status for b in v.batch_orders.all()),
            )
            out[v.id] = (v, snap)
        return out

    @staticmethod
    def get_priority_queue(
        *,
        tenant_id: UUID,
        facility_id: UUID,
        doctor_id: int | None = None,
    ) -> list[VisitSummary]:
        rows = WorklistSelectors.snapshots(tenant_id=tenant_id, facility_id=facility_id, doctor_id=doctor_id)

        queue = []
        for snap in rank(s for _, s in rows.values()):
            v = rows[snap.id][0]
            t = tier(snap)
            queue.append(
                VisitSummary(
                    id=v.id,
                    patient_id=v.patient_id,
                    status=v.status,
                    is_urgent=v.is_urgent,
                    reason=v.reason,
                    assigned_doctor_id=v.assigned_doctor_id,
                    created_at=v.created_at,
                    latest_condition=snap.latest_condition,
                    doctor_seen=snap.doctor_seen,
                    order_statuses=snap.order_statuses,
                    tier=t,
                    tier_label=TIER_LABELS[t],
                )
            )
        return queue
