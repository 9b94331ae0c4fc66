# clinic_core/pharmacy/services.py
from __future__ import annotations

import logging
from typing import Any, Iterable
from uuid import UUID

from django.db import transaction
from django.utils import timezone

from clinic_core.common.concurrency import retry_on_conflict
from clinic_core.common.errors import StaleGateDecision
from clinic_core.common.events import publish_on_commit
from clinic_core.pharmacy.gate import GateDecision, evaluate
from clinic_core.pharmacy.models import MedicationOrder, MedicationOrderStatus
from clinic_core.visits.models import Visit
from clinic_core.visits.state_machine import VisitStateMachine

logger = logging.getLogger(__name__)

PRESCRIPTION_FIELDS = (
    "name",
    "strength",
    "dosage_form",
    "quantity",
    "frequency",
    "duration",
    "instructions",
)


class PharmacyService:
    # ---------------------------------------------------------------------
    # Gate
    # ---------------------------------------------------------------------
    @staticmethod
    def check_medication_gate(*, tenant_id: UUID, facility_id: UUID, visit_id: UUID) -> GateDecision:
        """
        Advisory read. Evaluated fresh on every call; prescribe() checks again.
        """
        sm = VisitStateMachine.load(tenant_id=tenant_id, facility_id=facility_id, visit_id=visit_id)
        return evaluate(sm.order_summaries())

    # ---------------------------------------------------------------------
    # Prescriptions
    # ---------------------------------------------------------------------
    @staticmethod
    def write_prescriptions(
        *,
        visit: Visit,
        actor_user_id: int | None,
        prescriptions: Iterable[dict[str, Any]],
    ) -> list[MedicationOrder]:
        objs = [
            MedicationOrder(
                tenant_id=visit.tenant_id,
                facility_id=visit.facility_id,
                visit=visit,
                prescribed_by_id=actor_user_id,
                status=MedicationOrderStatus.PENDING,
                **{k: p[k] for k in PRESCRIPTION_FIELDS if p.get(k) is not None},
            )
            for p in prescriptions
        ]
        return MedicationOrder.objects.bulk_create(objs)

    @staticmethod
    def has_pending_prescriptions(*, visit: Visit) -> bool:
        return MedicationOrder.objects.filter(
            tenant_id=visit.tenant_id,
            facility_id=visit.facility_id,
            visit_id=visit.id,
            status=MedicationOrderStatus.PENDING,
        ).exists()

    @staticmethod
    @transaction.atomic
    def prescribe(
        *,
        tenant_id: UUID,
        facility_id: UUID,
        visit_id: UUID,
        actor_user_id: int | None,
        prescriptions: list[dict[str, Any]],
    ) -> list[MedicationOrder]:
        """
        Write medication orders after re-checking the gate in this transaction.

        The visit is committed with a version bump, so an investigation ordered
        concurrently makes one of the two writers fail.
        """
        sm = VisitStateMachine.load(tenant_id=tenant_id, facility_id=facility_id, visit_id=visit_id)
        sm.as_actor(actor_user_id).ensure_accepts_orders()

        decision = evaluate(sm.order_summaries())
        if not decision.allowed:
            logger.warning("visit %s: prescription refused, %s", visit_id, decision.reason)
            raise StaleGateDecision(decision.reason, details=decision.as_dict())

        orders = PharmacyService.write_prescriptions(
            visit=sm.visit,
            actor_user_id=actor_user_id,
            prescriptions=prescriptions,
        )
        sm.commit()

        logger.info("visit %s: %s medication orders written", visit_id, len(orders))
        publish_on_commit(
            "medication_orders.created",
            {
                "tenant_id": str(tenant_id),
                "facility_id": str(facility_id),
                "visit_id": str(visit_id),
                "medication_order_ids": [str(o.id) for o in orders],
            },
        )
        return orders

    # ---------------------------------------------------------------------
    # Dispensation
    # ---------------------------------------------------------------------
    @staticmethod
    @retry_on_conflict
    @transaction.atomic
    def mark_dispensed(
        *,
        tenant_id: UUID,
        facility_id: UUID,
        visit_id: UUID,
        actor_user_id: int | None,
    ) -> Visit:
        sm = VisitStateMachine.load(tenant_id=tenant_id, facility_id=facility_id, visit_id=visit_id)
        sm.as_actor(actor_user_id).mark_dispensed()

        now = timezone.now()
        MedicationOrder.objects.filter(
            tenant_id=tenant_id,
            facility_id=facility_id,
            visit_id=visit_id,
            status=MedicationOrderStatus.PENDING,
        ).update(
            status=MedicationOrderStatus.DISPENSED,
            dispensed_at=now,
            dispensed_by_id=actor_user_id,
            updated_at=now,
        )
        return sm.commit()
