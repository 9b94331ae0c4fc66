# clinic_core/conftest.py
import uuid

import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from rest_framework.test import APIClient

from clinic_core.common.events import subscribe, unsubscribe
from clinic_core.common.permissions import (
    ROLE_ADMIN,
    ROLE_DOCTOR,
    ROLE_LAB,
    ROLE_NURSE,
    ROLE_PHARMACY,
    ROLE_RADIOLOGY,
    ROLE_RECEPTION,
)

TENANT_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")
FACILITY_ID = uuid.UUID("00000000-0000-0000-0000-000000000101")


@pytest.fixture
def tenant_id():
    return TENANT_ID


@pytest.fixture
def facility_id():
    return FACILITY_ID


@pytest.fixture
def make_user(db):
    """
    make_user("nurse2", "NURSE") -> user in the NURSE group.
    """
    User = get_user_model()

    def _make(username, *roles):
        user = User.objects.create_user(username=username, password="testpass", is_active=True)
        for role in roles:
            group, _ = Group.objects.get_or_create(name=role)
            user.groups.add(group)
        return user

    return _make


@pytest.fixture
def admin_user(make_user):
    return make_user("admin", ROLE_ADMIN)


@pytest.fixture
def doctor(make_user):
    return make_user("doctor", ROLE_DOCTOR)


@pytest.fixture
def nurse(make_user):
    return make_user("nurse", ROLE_NURSE)


@pytest.fixture
def other_nurse(make_user):
    return make_user("nurse2", ROLE_NURSE)


@pytest.fixture
def reception(make_user):
    return make_user("reception", ROLE_RECEPTION)


@pytest.fixture
def lab_tech(make_user):
    return make_user("labtech", ROLE_LAB)


@pytest.fixture
def radiographer(make_user):
    return make_user("radiographer", ROLE_RADIOLOGY)


@pytest.fixture
def pharmacist(make_user):
    return make_user("pharmacist", ROLE_PHARMACY)


@pytest.fixture
def client_for():
    def _client(user):
        c = APIClient()
        c.force_authenticate(user=user)
        return c

    return _client


@pytest.fixture
def api_client(client_for, admin_user):
    return client_for(admin_user)


@pytest.fixture
def patient_id():
    return uuid.uuid4()


@pytest.fixture
def make_visit(db, tenant_id, facility_id):
    """
    Visit factory. condition=None leaves the visit untriaged;
    opened=True also runs the clinician open step.
    """
    from clinic_core.visits.services import VisitService

    def _make(*, condition=None, opened=False, doctor_id=None, actor_user_id=None, **kwargs):
        visit = VisitService.create_visit(
            tenant_id=tenant_id,
            facility_id=facility_id,
            patient_id=kwargs.pop("patient_id", None) or uuid.uuid4(),
            actor_user_id=actor_user_id,
            assigned_doctor_id=doctor_id,
            **kwargs,
        )
        if condition is not None:
            visit, _ = VisitService.record_triage(
                tenant_id=tenant_id,
                facility_id=facility_id,
                visit_id=visit.id,
                actor_user_id=actor_user_id,
                vitals={"condition": condition, "pulse_bpm": 80},
            )
        if opened:
            visit = VisitService.open_visit(
                tenant_id=tenant_id,
                facility_id=facility_id,
                visit_id=visit.id,
                actor_user_id=doctor_id,
            )
        return visit

    return _make


@pytest.fixture
def visit(make_visit):
    return make_visit()


@pytest.fixture
def triaged_visit(make_visit):
    return make_visit(condition="STABLE")


@pytest.fixture
def open_visit(make_visit, doctor):
    return make_visit(condition="STABLE", opened=True, doctor_id=doctor.id)


@pytest.fixture
def events():
    """
    Records published workflow events as (name, payload) tuples.
    Pair with django_capture_on_commit_callbacks(execute=True).
    """
    names = [
        "visit.created",
        "visit.status_changed",
        "visit.nurse_services_cleared",
        "batch_order.created",
        "batch_order.resolved",
        "order_line.status_changed",
        "nurse_assignment.issued",
        "nurse_assignment.completed",
        "medication_orders.created",
    ]
    seen = []
    handlers = []
    for name in names:
        def _handler(payload, _name=name):
            seen.append((_name, payload))

        subscribe(name)(_handler)
        handlers.append((name, _handler))

    yield seen

    for name, handler in handlers:
        unsubscribe(name, handler)
