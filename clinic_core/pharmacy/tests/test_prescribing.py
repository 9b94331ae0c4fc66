import pytest

from clinic_core.common.errors import InvalidTransition, InvalidVisitState, StaleGateDecision
from clinic_core.orders.models import OrderLineStatus
from clinic_core.orders.services import OrderService
from clinic_core.pharmacy.models import MedicationOrder, MedicationOrderStatus
from clinic_core.pharmacy.services import PharmacyService
from clinic_core.visits.models import VisitStatus
from clinic_core.visits.services import VisitService

pytestmark = pytest.mark.django_db

AMOXICILLIN = {"name": "Amoxicillin", "strength": "500mg", "frequency": "TDS", "duration": "5 days"}


def _gate(tenant_id, facility_id, visit):
    return PharmacyService.check_medication_gate(tenant_id=tenant_id, facility_id=facility_id, visit_id=visit.id)


def _prescribe(tenant_id, facility_id, visit, doctor, prescriptions=(AMOXICILLIN,)):
    return PharmacyService.prescribe(
        tenant_id=tenant_id,
        facility_id=facility_id,
        visit_id=visit.id,
        actor_user_id=doctor.id,
        prescriptions=list(prescriptions),
    )


def test_radiology_pending_blocks_then_releases(open_visit, tenant_id, facility_id, doctor, radiographer):
    batch = OrderService.create_batch_order(
        tenant_id=tenant_id,
        facility_id=facility_id,
        visit_id=open_visit.id,
        order_type="RADIOLOGY",
        lines=[{"service_code": "chest-xray"}],
        actor_user_id=doctor.id,
    )

    decision = _gate(tenant_id, facility_id, open_visit)
    assert decision.allowed is False
    assert "RADIOLOGY" in decision.reason

    OrderService.update_order_line_status(
        tenant_id=tenant_id,
        facility_id=facility_id,
        order_line_id=batch.lines.get().id,
        new_status=OrderLineStatus.COMPLETED,
        actor_user_id=radiographer.id,
    )

    decision = _gate(tenant_id, facility_id, open_visit)
    assert decision.allowed is True


def test_gate_is_recomputed_on_every_call(open_visit, tenant_id, facility_id, doctor):
    assert _gate(tenant_id, facility_id, open_visit).allowed is True

    OrderService.create_batch_order(
        tenant_id=tenant_id,
        facility_id=facility_id,
        visit_id=open_visit.id,
        order_type="LAB",
        lines=[{"service_code": "cbc"}],
        actor_user_id=doctor.id,
    )
    assert _gate(tenant_id, facility_id, open_visit).allowed is False


def test_prescribe_writes_pending_orders(open_visit, tenant_id, facility_id, doctor):
    orders = _prescribe(tenant_id, facility_id, open_visit, doctor)

    assert len(orders) == 1
    mo = MedicationOrder.objects.get(visit=open_visit)
    assert mo.status == MedicationOrderStatus.PENDING
    assert mo.strength == "500mg"
    assert mo.prescribed_by_id == doctor.id


def test_prescribe_after_gate_flipped_is_stale(open_visit, tenant_id, facility_id, doctor):
    assert _gate(tenant_id, facility_id, open_visit).allowed is True

    # an investigation lands between the advisory check and the write
    OrderService.create_batch_order(
        tenant_id=tenant_id,
        facility_id=facility_id,
        visit_id=open_visit.id,
        order_type="LAB",
        lines=[{"service_code": "blood-culture"}],
        actor_user_id=doctor.id,
    )

    with pytest.raises(StaleGateDecision) as exc:
        _prescribe(tenant_id, facility_id, open_visit, doctor)

    assert exc.value.details["outstanding"] == ["LAB"]
    assert not MedicationOrder.objects.filter(visit=open_visit).exists()


def test_prescribe_not_allowed_on_cancelled_visit(open_visit, tenant_id, facility_id, doctor):
    VisitService.cancel_visit(
        tenant_id=tenant_id,
        facility_id=facility_id,
        visit_id=open_visit.id,
        actor_user_id=doctor.id,
    )
    with pytest.raises(InvalidVisitState):
        _prescribe(tenant_id, facility_id, open_visit, doctor)


def test_prescribe_not_allowed_before_triage(visit, tenant_id, facility_id, doctor):
    with pytest.raises(InvalidVisitState):
        _prescribe(tenant_id, facility_id, visit, doctor)

    visit.refresh_from_db()
    assert visit.status == VisitStatus.WAITING_FOR_TRIAGE
    assert not MedicationOrder.objects.filter(visit=visit).exists()


def test_prescribe_then_finalize_routes_to_pharmacy(open_visit, tenant_id, facility_id, doctor, pharmacist):
    _prescribe(tenant_id, facility_id, open_visit, doctor)

    visit = VisitService.complete_visit(
        tenant_id=tenant_id,
        facility_id=facility_id,
        visit_id=open_visit.id,
        actor_user_id=doctor.id,
        diagnosis={"summary": "Tonsillitis"},
    )
    assert visit.status == VisitStatus.SENT_TO_PHARMACY

    visit = PharmacyService.mark_dispensed(
        tenant_id=tenant_id,
        facility_id=facility_id,
        visit_id=open_visit.id,
        actor_user_id=pharmacist.id,
    )
    assert visit.status == VisitStatus.COMPLETED
    assert visit.completed_at is not None

    mo = MedicationOrder.objects.get(visit=open_visit)
    assert mo.status == MedicationOrderStatus.DISPENSED
    assert mo.dispensed_by_id == pharmacist.id
    assert mo.dispensed_at is not None


def test_dispensed_only_from_pharmacy_status(open_visit, tenant_id, facility_id, pharmacist):
    with pytest.raises(InvalidTransition):
        PharmacyService.mark_dispensed(
            tenant_id=tenant_id,
            facility_id=facility_id,
            visit_id=open_visit.id,
            actor_user_id=pharmacist.id,
        )


def test_medication_event_published(
    open_visit, tenant_id, facility_id, doctor, events, django_capture_on_commit_callbacks
):
    with django_capture_on_commit_callbacks(execute=True):
        orders = _prescribe(tenant_id, facility_id, open_visit, doctor)

    payloads = [p for name, p in events if name == "medication_orders.created"]
    assert payloads == [
        {
            "tenant_id": str(tenant_id),
            "facility_id": str(facility_id),
            "visit_id": str(open_visit.id),
            "medication_order_ids": [str(orders[0].id)],
        }
    ]
