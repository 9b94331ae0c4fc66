import random
import uuid
from datetime import datetime, timedelta, timezone

from clinic_core.visits.models import Condition, VisitStatus
from clinic_core.worklist.priority import (
    TIER_NEW_CONSULTATION,
    TIER_OTHER,
    TIER_RESULTS_READY,
    TIER_URGENT,
    VisitSnapshot,
    rank,
    tier,
)

T0 = datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)


def snap(status, minutes, condition=None, doctor_seen=False, id=None):
    return VisitSnapshot(
        id=id or uuid.uuid4(),
        status=status,
        created_at=T0 + timedelta(minutes=minutes),
        latest_condition=condition,
        doctor_seen=doctor_seen,
    )


def test_tiers():
    assert tier(snap(VisitStatus.WAITING_FOR_DOCTOR, 0, Condition.CRITICAL)) == TIER_URGENT
    assert tier(snap(VisitStatus.AWAITING_RESULTS_REVIEW, 0, Condition.CRITICAL)) == TIER_URGENT
    assert tier(snap(VisitStatus.AWAITING_RESULTS_REVIEW, 0, Condition.STABLE)) == TIER_RESULTS_READY
    assert tier(snap(VisitStatus.NURSE_SERVICES_COMPLETED, 0)) == TIER_RESULTS_READY
    assert tier(snap(VisitStatus.WAITING_FOR_DOCTOR, 0, Condition.URGENT)) == TIER_NEW_CONSULTATION
    assert tier(snap(VisitStatus.WAITING_FOR_DOCTOR, 0, doctor_seen=True)) == TIER_OTHER


def test_critical_outranks_everything_else():
    critical = snap(VisitStatus.WAITING_FOR_DOCTOR, 90, Condition.CRITICAL)
    others = [
        snap(VisitStatus.AWAITING_RESULTS_REVIEW, 0, Condition.STABLE),
        snap(VisitStatus.NURSE_SERVICES_COMPLETED, 5),
        snap(VisitStatus.WAITING_FOR_DOCTOR, 1, Condition.GOOD),
    ]
    assert rank(others + [critical])[0] is critical


def test_ties_break_on_arrival_then_id():
    a = snap(VisitStatus.WAITING_FOR_DOCTOR, 10, id=uuid.UUID(int=2))
    b = snap(VisitStatus.WAITING_FOR_DOCTOR, 10, id=uuid.UUID(int=1))
    c = snap(VisitStatus.WAITING_FOR_DOCTOR, 5, id=uuid.UUID(int=3))
    assert rank([a, b, c]) == [c, b, a]


def test_rank_is_deterministic_under_shuffles():
    snaps = [
        snap(VisitStatus.WAITING_FOR_DOCTOR, i % 4, random.choice([None, Condition.STABLE, Condition.CRITICAL]))
        for i in range(12)
    ] + [snap(VisitStatus.AWAITING_RESULTS_REVIEW, i) for i in range(4)]

    expected = rank(snaps)
    for seed in range(5):
        shuffled = list(snaps)
        random.Random(seed).shuffle(shuffled)
        assert rank(shuffled) == expected


def test_non_worklist_statuses_dropped():
    kept = snap(VisitStatus.WAITING_FOR_DOCTOR, 0)
    dropped = [
        snap(VisitStatus.WAITING_FOR_TRIAGE, 0, Condition.CRITICAL),
        snap(VisitStatus.SENT_TO_LAB, 0),
        snap(VisitStatus.UNDER_DOCTOR_REVIEW, 0),
        snap(VisitStatus.COMPLETED, 0),
    ]
    assert rank(dropped + [kept]) == [kept]


def test_order_statuses_do_not_move_a_visit():
    base = snap(VisitStatus.AWAITING_RESULTS_REVIEW, 5)
    pending = VisitSnapshot(
        id=base.id,
        status=base.status,
        created_at=base.created_at,
        order_statuses=("IN_PROGRESS", "PENDING"),
    )
    done = VisitSnapshot(
        id=base.id,
        status=base.status,
        created_at=base.created_at,
        order_statuses=("COMPLETED",),
    )
    assert tier(pending) == tier(done) == TIER_RESULTS_READY
    other = snap(VisitStatus.WAITING_FOR_DOCTOR, 0)
    assert [s.id for s in rank([pending, other])] == [s.id for s in rank([done, other])]
