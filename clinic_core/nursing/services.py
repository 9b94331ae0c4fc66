# clinic_core/nursing/services.py
from __future__ import annotations

import logging
from uuid import UUID

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from clinic_core.common.concurrency import compare_and_set, retry_on_conflict
from clinic_core.common.errors import ConcurrentModification, InvalidTransition, NotAssigned
from clinic_core.common.events import publish_on_commit
from clinic_core.nursing.models import AssignmentStatus, NurseServiceAssignment
from clinic_core.visits.models import Visit
from clinic_core.visits.state_machine import VisitStateMachine

logger = logging.getLogger(__name__)


def _get_assignment(*, tenant_id, facility_id, assignment_id) -> NurseServiceAssignment:
    return NurseServiceAssignment.objects.get(
        id=assignment_id,
        tenant_id=tenant_id,
        facility_id=facility_id,
    )


def _ensure_pending(assignment: NurseServiceAssignment, target: str) -> None:
    if assignment.is_terminal:
        logger.warning("nurse assignment %s: rejected %s -> %s", assignment.id, assignment.status, target)
        raise InvalidTransition(
            f"Nurse assignment is already {assignment.status}.",
            details={"assignment_id": str(assignment.id), "status": assignment.status},
        )


class NursingService:
    @staticmethod
    @retry_on_conflict
    @transaction.atomic
    def issue_assignment(
        *,
        tenant_id: UUID,
        facility_id: UUID,
        visit_id: UUID,
        service_code: str,
        assigned_nurse_id: int,
        instructions: str = "",
        actor_user_id: int | None = None,
    ) -> NurseServiceAssignment:
        sm = VisitStateMachine.load(tenant_id=tenant_id, facility_id=facility_id, visit_id=visit_id)
        sm.as_actor(actor_user_id).ensure_accepts_orders()

        assignment = NurseServiceAssignment.objects.create(
            tenant_id=tenant_id,
            facility_id=facility_id,
            visit=sm.visit,
            service_code=service_code,
            assigned_nurse_id=assigned_nurse_id,
            assigned_by_id=actor_user_id,
            instructions=instructions or "",
        )
        sm.recompute()
        sm.commit()

        logger.info("nurse assignment %s (%s) issued to user %s", assignment.id, service_code, assigned_nurse_id)
        publish_on_commit(
            "nurse_assignment.issued",
            {
                "tenant_id": str(tenant_id),
                "facility_id": str(facility_id),
                "visit_id": str(visit_id),
                "assignment_id": str(assignment.id),
                "assigned_nurse_id": assigned_nurse_id,
            },
        )
        return assignment

    @staticmethod
    def complete_assignment(
        *,
        tenant_id: UUID,
        facility_id: UUID,
        assignment_id: UUID,
        acting_user_id: int,
        notes: str,
        override: bool = False,
        expected_version: int | None = None,
    ) -> Visit:
        """
        Complete a nurse assignment and return the updated visit.

        Only the assigned nurse may complete it unless `override` is set.
        With `expected_version` the caller holds a version token from an
        earlier read and a mismatch fails immediately. Without one the
        version read here is pinned: retries absorb conflicts on the visit
        row, but another writer completing the assignment first still
        surfaces as ConcurrentModification.
        """
        if not (notes or "").strip():
            raise ValidationError({"notes": "Completion notes are required."})

        kwargs = dict(
            tenant_id=tenant_id,
            facility_id=facility_id,
            assignment_id=assignment_id,
            acting_user_id=acting_user_id,
            notes=notes.strip(),
            override=override,
            expected_version=expected_version,
        )
        if expected_version is None:
            kwargs["expected_version"] = _get_assignment(
                tenant_id=tenant_id,
                facility_id=facility_id,
                assignment_id=assignment_id,
            ).version
            return retry_on_conflict(NursingService._complete)(**kwargs)
        return NursingService._complete(**kwargs)

    @staticmethod
    @transaction.atomic
    def _complete(
        *,
        tenant_id,
        facility_id,
        assignment_id,
        acting_user_id,
        notes,
        override,
        expected_version,
    ) -> Visit:
        assignment = _get_assignment(tenant_id=tenant_id, facility_id=facility_id, assignment_id=assignment_id)

        if assignment.assigned_nurse_id != acting_user_id and not override:
            logger.warning(
                "nurse assignment %s: user %s is not the assignee (%s)",
                assignment.id,
                acting_user_id,
                assignment.assigned_nurse_id,
            )
            raise NotAssigned(
                details={"assignment_id": str(assignment.id), "assigned_nurse_id": assignment.assigned_nurse_id},
            )

        if expected_version != assignment.version:
            raise ConcurrentModification(
                details={
                    "entity": NurseServiceAssignment.__name__,
                    "id": str(assignment.id),
                    "expected_version": expected_version,
                },
            )

        _ensure_pending(assignment, AssignmentStatus.COMPLETED)

        sm = VisitStateMachine.load(tenant_id=tenant_id, facility_id=facility_id, visit_id=assignment.visit_id)
        sm.as_actor(acting_user_id)

        now = timezone.now()
        compare_and_set(
            NurseServiceAssignment,
            pk=assignment.id,
            version=expected_version,
            status=AssignmentStatus.COMPLETED,
            completion_notes=notes,
            completed_at=now,
            completed_by_id=acting_user_id,
            updated_at=now,
        )

        sm.nurse_work_resolved()
        visit = sm.commit()

        logger.info("nurse assignment %s completed by user %s", assignment.id, acting_user_id)
        publish_on_commit(
            "nurse_assignment.completed",
            {
                "tenant_id": str(tenant_id),
                "facility_id": str(facility_id),
                "visit_id": str(assignment.visit_id),
                "assignment_id": str(assignment.id),
                "completed_by_id": acting_user_id,
            },
        )

        return visit

    @staticmethod
    @retry_on_conflict
    @transaction.atomic
    def cancel_assignment(
        *,
        tenant_id: UUID,
        facility_id: UUID,
        assignment_id: UUID,
        actor_user_id: int | None = None,
    ) -> NurseServiceAssignment:
        assignment = _get_assignment(tenant_id=tenant_id, facility_id=facility_id, assignment_id=assignment_id)
        _ensure_pending(assignment, AssignmentStatus.CANCELLED)

        sm = VisitStateMachine.load(tenant_id=tenant_id, facility_id=facility_id, visit_id=assignment.visit_id)
        sm.as_actor(actor_user_id)

        compare_and_set(
            NurseServiceAssignment,
            pk=assignment.id,
            version=assignment.version,
            status=AssignmentStatus.CANCELLED,
            updated_at=timezone.now(),
        )
        sm.recompute()
        sm.commit()

        logger.info("nurse assignment %s cancelled", assignment.id)
        assignment.refresh_from_db()
        return assignment
