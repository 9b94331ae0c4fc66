# clinic_core/visits/selectors.py
from __future__ import annotations

from uuid import UUID

from django.db.models import QuerySet

from clinic_core.visits.models import Visit, VitalSigns


class VisitSelectors:
    """
    Read-only queries for visits.
    No .save(), no state mutation here.
    """

    @staticmethod
    def visits_in_scope(*, tenant_id: UUID, facility_id: UUID) -> QuerySet[Visit]:
        return Visit.objects.filter(tenant_id=tenant_id, facility_id=facility_id).order_by("-created_at", "id")

    @staticmethod
    def get_visit(*, tenant_id: UUID, facility_id: UUID, visit_id: UUID) -> Visit:
        return Visit.objects.get(id=visit_id, tenant_id=tenant_id, facility_id=facility_id)

    @staticmethod
    def latest_vitals(*, tenant_id: UUID, facility_id: UUID, visit_id: UUID) -> VitalSigns | None:
        return (
            VitalSigns.objects.filter(tenant_id=tenant_id, facility_id=facility_id, visit_id=visit_id)
            .order_by("-created_at", "-id")
            .first()
        )
