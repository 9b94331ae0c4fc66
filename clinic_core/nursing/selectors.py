# clinic_core/nursing/selectors.py
from __future__ import annotations

from uuid import UUID

from django.db.models import QuerySet

from clinic_core.nursing.models import NurseServiceAssignment


class NursingSelector:
    @staticmethod
    def get_assignment(*, tenant_id: UUID, facility_id: UUID, assignment_id: UUID) -> NurseServiceAssignment:
        return NurseServiceAssignment.objects.get(
            id=assignment_id,
            tenant_id=tenant_id,
            facility_id=facility_id,
        )

    @staticmethod
    def list_assignments(
        *,
        tenant_id: UUID,
        facility_id: UUID,
        visit_id: UUID | None = None,
        assigned_nurse_id: int | None = None,
        status: str | None = None,
    ) -> QuerySet[NurseServiceAssignment]:
        """
        Nurses see "my assignments" by passing their own user id.
        """
        qs = NurseServiceAssignment.objects.filter(tenant_id=tenant_id, facility_id=facility_id)
        if visit_id:
            qs = qs.filter(visit_id=visit_id)
        if assigned_nurse_id is not None:
            qs = qs.filter(assigned_nurse_id=assigned_nurse_id)
        if status:
            qs = qs.filter(status=status)
        return qs.order_by("created_at", "id")
