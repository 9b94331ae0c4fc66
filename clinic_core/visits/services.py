# clinic_core/visits/services.py
from __future__ import annotations

import logging
from typing import Any, Iterable
from uuid import UUID

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from clinic_core.common.concurrency import retry_on_conflict
from clinic_core.common.events import publish_on_commit
from clinic_core.visits.models import DiagnosisNote, Visit, VisitStatus, VitalSigns
from clinic_core.visits.state_machine import VisitStateMachine

logger = logging.getLogger(__name__)


VITALS_FIELDS = (
    "condition",
    "temperature_c",
    "pulse_bpm",
    "resp_rate",
    "bp_systolic",
    "bp_diastolic",
    "spo2",
    "weight_kg",
    "height_cm",
    "note",
)


class VisitService:
    """
    Write model for visits. Every status change goes through VisitStateMachine.
    """

    # ---------------------------------------------------------------------
    # Intake
    # ---------------------------------------------------------------------
    @staticmethod
    @transaction.atomic
    def create_visit(
        *,
        tenant_id: UUID,
        facility_id: UUID,
        patient_id: UUID,
        actor_user_id: int | None,
        reason: str = "",
        is_urgent: bool = False,
        assigned_doctor_id: int | None = None,
    ) -> Visit:
        visit = Visit.objects.create(
            tenant_id=tenant_id,
            facility_id=facility_id,
            patient_id=patient_id,
            status=VisitStatus.WAITING_FOR_TRIAGE,
            reason=reason or "",
            is_urgent=bool(is_urgent),
            assigned_doctor_id=assigned_doctor_id,
            created_by_id=actor_user_id,
        )
        logger.info("visit %s created for patient %s", visit.id, patient_id)
        publish_on_commit(
            "visit.created",
            {
                "tenant_id": str(tenant_id),
                "facility_id": str(facility_id),
                "visit_id": str(visit.id),
                "patient_id": str(patient_id),
            },
        )
        return visit

    # ---------------------------------------------------------------------
    # Triage
    # ---------------------------------------------------------------------
    @staticmethod
    @retry_on_conflict
    @transaction.atomic
    def record_triage(
        *,
        tenant_id: UUID,
        facility_id: UUID,
        visit_id: UUID,
        actor_user_id: int | None,
        vitals: dict[str, Any],
    ) -> tuple[Visit, VitalSigns]:
        """
        Append a vitals snapshot. The first one moves the visit out of
        WAITING_FOR_TRIAGE; later ones only refresh the latest condition.
        """
        sm = VisitStateMachine.load(tenant_id=tenant_id, facility_id=facility_id, visit_id=visit_id)
        sm.as_actor(actor_user_id).record_triage()

        snapshot = VitalSigns.objects.create(
            tenant_id=tenant_id,
            facility_id=facility_id,
            visit=sm.visit,
            recorded_by_id=actor_user_id,
            **{k: vitals[k] for k in VITALS_FIELDS if k in vitals},
        )
        visit = sm.commit()
        return visit, snapshot

    # ---------------------------------------------------------------------
    # Clinician review
    # ---------------------------------------------------------------------
    @staticmethod
    @retry_on_conflict
    @transaction.atomic
    def open_visit(
        *,
        tenant_id: UUID,
        facility_id: UUID,
        visit_id: UUID,
        actor_user_id: int | None,
    ) -> Visit:
        sm = VisitStateMachine.load(tenant_id=tenant_id, facility_id=facility_id, visit_id=visit_id)
        sm.as_actor(actor_user_id).open()
        if sm.visit.assigned_doctor_id is None:
            sm.visit.assigned_doctor_id = actor_user_id
        return sm.commit()

    @staticmethod
    @transaction.atomic
    def complete_visit(
        *,
        tenant_id: UUID,
        facility_id: UUID,
        visit_id: UUID,
        actor_user_id: int | None,
        diagnosis: dict[str, Any],
        prescriptions: Iterable[dict[str, Any]] = (),
        has_pending_prescriptions: bool = False,
    ) -> Visit:
        """
        Finalize the diagnosis.

        Prescriptions passed here are written as PENDING medication orders.
        The visit goes to SENT_TO_PHARMACY when any prescription is pending
        (new, flagged by the caller, or written earlier), else to COMPLETED.
        """
        from clinic_core.pharmacy.services import PharmacyService

        sm = VisitStateMachine.load(tenant_id=tenant_id, facility_id=facility_id, visit_id=visit_id)
        sm.as_actor(actor_user_id)

        prescriptions = list(prescriptions or ())
        pending = (
            bool(prescriptions)
            or bool(has_pending_prescriptions)
            or PharmacyService.has_pending_prescriptions(visit=sm.visit)
        )
        sm.finalize(pending_prescriptions=pending)

        if prescriptions:
            PharmacyService.write_prescriptions(
                visit=sm.visit,
                actor_user_id=actor_user_id,
                prescriptions=prescriptions,
            )

        now = timezone.now()
        DiagnosisNote.objects.update_or_create(
            visit=sm.visit,
            defaults={
                "tenant_id": tenant_id,
                "facility_id": facility_id,
                "summary": diagnosis.get("summary", ""),
                "details": diagnosis.get("details", ""),
                "patient_instructions": diagnosis.get("patient_instructions", ""),
                "authored_by_id": actor_user_id,
                "finalized_at": now,
            },
        )
        return sm.commit()

    # ---------------------------------------------------------------------
    # Cancellation
    # ---------------------------------------------------------------------
    @staticmethod
    @retry_on_conflict
    @transaction.atomic
    def cancel_visit(
        *,
        tenant_id: UUID,
        facility_id: UUID,
        visit_id: UUID,
        actor_user_id: int | None,
    ) -> Visit:
        """
        Cancel the visit and every open order line and nurse assignment with it.
        """
        from clinic_core.nursing.models import AssignmentStatus, NurseServiceAssignment
        from clinic_core.orders.aggregation import TERMINAL_LINE_STATUSES
        from clinic_core.orders.models import OrderLine, OrderLineStatus
        from clinic_core.pharmacy.models import MedicationOrder, MedicationOrderStatus

        sm = VisitStateMachine.load(tenant_id=tenant_id, facility_id=facility_id, visit_id=visit_id)
        sm.as_actor(actor_user_id).cancel()

        now = timezone.now()
        scope = {"tenant_id": tenant_id, "facility_id": facility_id, "visit_id": sm.visit.id}

        lines = (
            OrderLine.objects.filter(**scope)
            .exclude(status__in=TERMINAL_LINE_STATUSES)
            .update(
                status=OrderLineStatus.CANCELLED,
                version=F("version") + 1,
                updated_by_id=actor_user_id,
                updated_at=now,
            )
        )
        assignments = NurseServiceAssignment.objects.filter(
            status=AssignmentStatus.PENDING, **scope
        ).update(
            status=AssignmentStatus.CANCELLED,
            version=F("version") + 1,
            updated_at=now,
        )
        MedicationOrder.objects.filter(status=MedicationOrderStatus.PENDING, **scope).update(
            status=MedicationOrderStatus.CANCELLED,
            updated_at=now,
        )

        visit = sm.commit()
        logger.info(
            "visit %s cancelled; %s order lines and %s nurse assignments cancelled",
            visit.id,
            lines,
            assignments,
        )
        return visit
