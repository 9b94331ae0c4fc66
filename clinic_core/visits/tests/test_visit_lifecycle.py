import pytest

from clinic_core.common.errors import InvalidTransition, InvalidVisitState
from clinic_core.nursing.models import AssignmentStatus, NurseServiceAssignment
from clinic_core.nursing.services import NursingService
from clinic_core.orders.models import OrderLine, OrderLineStatus
from clinic_core.orders.services import OrderService
from clinic_core.pharmacy.models import MedicationOrder, MedicationOrderStatus
from clinic_core.visits.models import DiagnosisNote, VisitStatus
from clinic_core.visits.selectors import VisitSelectors
from clinic_core.visits.services import VisitService

pytestmark = pytest.mark.django_db


def _complete(tenant_id, facility_id, visit, doctor, **kwargs):
    return VisitService.complete_visit(
        tenant_id=tenant_id,
        facility_id=facility_id,
        visit_id=visit.id,
        actor_user_id=doctor.id,
        diagnosis={"summary": "Viral fever", "patient_instructions": "Fluids and rest"},
        **kwargs,
    )


def test_new_visit_waits_for_triage(visit):
    assert visit.status == VisitStatus.WAITING_FOR_TRIAGE
    assert visit.version == 1
    assert visit.triaged_at is None


def test_triage_moves_visit_to_waiting_for_doctor(tenant_id, facility_id, visit, nurse):
    v, vitals = VisitService.record_triage(
        tenant_id=tenant_id,
        facility_id=facility_id,
        visit_id=visit.id,
        actor_user_id=nurse.id,
        vitals={"condition": "STABLE", "temperature_c": 37.2, "spo2": 98},
    )
    assert v.status == VisitStatus.WAITING_FOR_DOCTOR
    assert v.triaged_at is not None
    assert vitals.condition == "STABLE"
    assert vitals.recorded_by_id == nurse.id


def test_triage_publishes_both_steps(
    tenant_id, facility_id, visit, nurse, events, django_capture_on_commit_callbacks
):
    with django_capture_on_commit_callbacks(execute=True):
        VisitService.record_triage(
            tenant_id=tenant_id,
            facility_id=facility_id,
            visit_id=visit.id,
            actor_user_id=nurse.id,
            vitals={"condition": "URGENT"},
        )

    changes = [(p["from_status"], p["to_status"]) for name, p in events if name == "visit.status_changed"]
    assert changes == [
        (VisitStatus.WAITING_FOR_TRIAGE, VisitStatus.TRIAGED),
        (VisitStatus.TRIAGED, VisitStatus.WAITING_FOR_DOCTOR),
    ]
    assert all(p["actor_user_id"] == nurse.id for name, p in events if name == "visit.status_changed")


def test_repeat_triage_updates_latest_vitals_only(tenant_id, facility_id, triaged_visit, nurse):
    v, _ = VisitService.record_triage(
        tenant_id=tenant_id,
        facility_id=facility_id,
        visit_id=triaged_visit.id,
        actor_user_id=nurse.id,
        vitals={"condition": "CRITICAL"},
    )
    assert v.status == VisitStatus.WAITING_FOR_DOCTOR
    latest = VisitSelectors.latest_vitals(tenant_id=tenant_id, facility_id=facility_id, visit_id=v.id)
    assert latest.condition == "CRITICAL"


def test_open_assigns_doctor_and_reviews(tenant_id, facility_id, triaged_visit, doctor):
    v = VisitService.open_visit(
        tenant_id=tenant_id,
        facility_id=facility_id,
        visit_id=triaged_visit.id,
        actor_user_id=doctor.id,
    )
    assert v.status == VisitStatus.UNDER_DOCTOR_REVIEW
    assert v.assigned_doctor_id == doctor.id
    assert v.doctor_seen_at is not None


def test_cannot_open_untriaged_visit(tenant_id, facility_id, visit, doctor):
    with pytest.raises(InvalidTransition):
        VisitService.open_visit(
            tenant_id=tenant_id,
            facility_id=facility_id,
            visit_id=visit.id,
            actor_user_id=doctor.id,
        )
    visit.refresh_from_db()
    assert visit.status == VisitStatus.WAITING_FOR_TRIAGE


def test_complete_without_prescriptions_completes(tenant_id, facility_id, open_visit, doctor):
    v = _complete(tenant_id, facility_id, open_visit, doctor)

    assert v.status == VisitStatus.COMPLETED
    assert v.completed_at is not None
    note = DiagnosisNote.objects.get(visit=v)
    assert note.summary == "Viral fever"
    assert note.authored_by_id == doctor.id


def test_complete_with_prescriptions_goes_to_pharmacy(tenant_id, facility_id, open_visit, doctor):
    v = _complete(
        tenant_id,
        facility_id,
        open_visit,
        doctor,
        prescriptions=[{"name": "Paracetamol", "strength": "500mg", "frequency": "TDS"}],
    )
    assert v.status == VisitStatus.SENT_TO_PHARMACY
    assert v.completed_at is None
    assert MedicationOrder.objects.filter(visit=v, status=MedicationOrderStatus.PENDING).count() == 1


def test_complete_flagged_pending_goes_to_pharmacy(tenant_id, facility_id, open_visit, doctor):
    v = _complete(tenant_id, facility_id, open_visit, doctor, has_pending_prescriptions=True)
    assert v.status == VisitStatus.SENT_TO_PHARMACY


@pytest.mark.parametrize("order_type", ["LAB", "RADIOLOGY", "NURSE"])
def test_complete_blocked_by_open_batch_order(tenant_id, facility_id, open_visit, doctor, order_type):
    OrderService.create_batch_order(
        tenant_id=tenant_id,
        facility_id=facility_id,
        visit_id=open_visit.id,
        order_type=order_type,
        lines=[{"service_code": "svc-1"}],
        actor_user_id=doctor.id,
    )

    with pytest.raises(InvalidVisitState) as exc:
        _complete(tenant_id, facility_id, open_visit, doctor)

    assert len(exc.value.details["open_orders"]) == 1
    assert not DiagnosisNote.objects.filter(visit=open_visit).exists()


def test_complete_blocked_by_partly_done_batch(tenant_id, facility_id, open_visit, doctor, lab_tech):
    batch = OrderService.create_batch_order(
        tenant_id=tenant_id,
        facility_id=facility_id,
        visit_id=open_visit.id,
        order_type="LAB",
        lines=[{"service_code": "cbc"}, {"service_code": "lft"}],
        actor_user_id=doctor.id,
    )
    first = batch.lines.order_by("position").first()
    OrderService.update_order_line_status(
        tenant_id=tenant_id,
        facility_id=facility_id,
        order_line_id=first.id,
        new_status=OrderLineStatus.COMPLETED,
        actor_user_id=lab_tech.id,
    )

    with pytest.raises(InvalidVisitState):
        _complete(tenant_id, facility_id, open_visit, doctor)


def test_complete_blocked_by_pending_nurse_assignment(tenant_id, facility_id, open_visit, doctor, nurse):
    NursingService.issue_assignment(
        tenant_id=tenant_id,
        facility_id=facility_id,
        visit_id=open_visit.id,
        service_code="wound-dressing",
        assigned_nurse_id=nurse.id,
        actor_user_id=doctor.id,
    )

    with pytest.raises(InvalidVisitState) as exc:
        _complete(tenant_id, facility_id, open_visit, doctor)
    assert exc.value.details["open_assignments"] == 1


def test_complete_blocked_before_triage(tenant_id, facility_id, visit, doctor):
    with pytest.raises(InvalidVisitState):
        _complete(tenant_id, facility_id, visit, doctor)


def test_completed_visit_rejects_further_work(tenant_id, facility_id, open_visit, doctor):
    _complete(tenant_id, facility_id, open_visit, doctor)

    with pytest.raises(InvalidVisitState):
        OrderService.create_batch_order(
            tenant_id=tenant_id,
            facility_id=facility_id,
            visit_id=open_visit.id,
            order_type="LAB",
            lines=[{"service_code": "cbc"}],
            actor_user_id=doctor.id,
        )
    with pytest.raises(InvalidVisitState):
        VisitService.cancel_visit(
            tenant_id=tenant_id,
            facility_id=facility_id,
            visit_id=open_visit.id,
            actor_user_id=doctor.id,
        )


def test_cancel_cascades_to_open_work(tenant_id, facility_id, open_visit, doctor, nurse, lab_tech):
    batch = OrderService.create_batch_order(
        tenant_id=tenant_id,
        facility_id=facility_id,
        visit_id=open_visit.id,
        order_type="LAB",
        lines=[{"service_code": "cbc"}, {"service_code": "lft"}],
        actor_user_id=doctor.id,
    )
    done = batch.lines.order_by("position").first()
    OrderService.update_order_line_status(
        tenant_id=tenant_id,
        facility_id=facility_id,
        order_line_id=done.id,
        new_status=OrderLineStatus.COMPLETED,
        actor_user_id=lab_tech.id,
    )
    NursingService.issue_assignment(
        tenant_id=tenant_id,
        facility_id=facility_id,
        visit_id=open_visit.id,
        service_code="iv-line",
        assigned_nurse_id=nurse.id,
        actor_user_id=doctor.id,
    )

    v = VisitService.cancel_visit(
        tenant_id=tenant_id,
        facility_id=facility_id,
        visit_id=open_visit.id,
        actor_user_id=doctor.id,
    )

    assert v.status == VisitStatus.CANCELLED
    assert v.cancelled_at is not None
    statuses = dict(OrderLine.objects.filter(visit=v).values_list("service_code", "status"))
    assert statuses == {"cbc": OrderLineStatus.COMPLETED, "lft": OrderLineStatus.CANCELLED}
    assert set(NurseServiceAssignment.objects.filter(visit=v).values_list("status", flat=True)) == {
        AssignmentStatus.CANCELLED
    }


def test_every_write_bumps_visit_version(tenant_id, facility_id, triaged_visit, doctor):
    before = triaged_visit.version
    v = VisitService.open_visit(
        tenant_id=tenant_id,
        facility_id=facility_id,
        visit_id=triaged_visit.id,
        actor_user_id=doctor.id,
    )
    assert v.version == before + 1

    v2 = VisitService.open_visit(
        tenant_id=tenant_id,
        facility_id=facility_id,
        visit_id=triaged_visit.id,
        actor_user_id=doctor.id,
    )
    assert v2.status == VisitStatus.UNDER_DOCTOR_REVIEW
    assert v2.version == before + 2
