import pytest

from clinic_core.tests.helpers import scoped

pytestmark = pytest.mark.django_db


@pytest.fixture
def h(tenant_id, facility_id):
    return scoped(tenant_id, facility_id)


@pytest.fixture
def issued(client_for, doctor, nurse, triaged_visit, h):
    r = client_for(doctor).post(
        "/api/v1/nurse-assignments/",
        {
            "visit_id": str(triaged_visit.id),
            "service_code": "nebulization",
            "assigned_nurse_id": nurse.id,
            "instructions": "Salbutamol 2.5mg",
        },
        format="json",
        **h,
    )
    assert r.status_code == 201, r.data
    return r.data


def test_issue_sets_visit_pending(client_for, nurse, issued, triaged_visit, h):
    assert issued["status"] == "PENDING"
    assert issued["assigned_nurse_id"] == nurse.id

    v = client_for(nurse).get(f"/api/v1/visits/{triaged_visit.id}/", **h)
    assert v.data["status"] == "NURSE_SERVICES_PENDING"


def test_nurse_lists_own_assignments_by_default(client_for, nurse, other_nurse, issued, h):
    r = client_for(nurse).get("/api/v1/nurse-assignments/", **h)
    assert [a["id"] for a in r.data["results"]] == [issued["id"]]

    r = client_for(other_nurse).get("/api/v1/nurse-assignments/", **h)
    assert r.data["count"] == 0

    r = client_for(other_nurse).get("/api/v1/nurse-assignments/?mine=0", **h)
    assert r.data["count"] == 1


def test_assignee_completes(client_for, nurse, issued, h):
    r = client_for(nurse).post(
        f"/api/v1/nurse-assignments/{issued['id']}/complete/",
        {"notes": "Given, SpO2 improved to 97%", "expected_version": issued["version"]},
        format="json",
        **h,
    )
    assert r.status_code == 200, r.data
    assert r.data["visit"]["status"] == "NURSE_SERVICES_COMPLETED"
    assert r.data["assignment"]["status"] == "COMPLETED"
    assert r.data["assignment"]["completion_notes"] == "Given, SpO2 improved to 97%"


def test_second_completion_with_stale_version_conflicts(client_for, nurse, issued, h):
    body = {"notes": "Done", "expected_version": issued["version"]}
    url = f"/api/v1/nurse-assignments/{issued['id']}/complete/"

    first = client_for(nurse).post(url, body, format="json", **h)
    second = client_for(nurse).post(url, body, format="json", **h)

    assert first.status_code == 200
    assert second.status_code == 409
    assert second.data["error"]["code"] == "concurrent_modification"


def test_other_nurse_gets_not_assigned(client_for, other_nurse, issued, h):
    r = client_for(other_nurse).post(
        f"/api/v1/nurse-assignments/{issued['id']}/complete/",
        {"notes": "Done"},
        format="json",
        **h,
    )
    assert r.status_code == 403
    assert r.data["error"]["code"] == "not_assigned"


def test_blank_notes_rejected(client_for, nurse, issued, h):
    r = client_for(nurse).post(
        f"/api/v1/nurse-assignments/{issued['id']}/complete/",
        {"notes": "  "},
        format="json",
        **h,
    )
    assert r.status_code == 400
    assert r.data["error"]["code"] == "validation_error"


def test_doctor_cancels(client_for, doctor, issued, h):
    r = client_for(doctor).post(f"/api/v1/nurse-assignments/{issued['id']}/cancel/", **h)
    assert r.status_code == 200
    assert r.data["status"] == "CANCELLED"
