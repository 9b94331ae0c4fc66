from types import SimpleNamespace

import pytest

from clinic_core.orders.models import OrderStatus, OrderType
from clinic_core.pharmacy.gate import evaluate


def order(order_type, status):
    return SimpleNamespace(order_type=order_type, status=status)


def test_no_investigations_allows():
    decision = evaluate([])
    assert decision.allowed is True
    assert decision.reason == ""
    assert decision.as_dict() == {"allowed": True, "reason": "", "outstanding": []}


@pytest.mark.parametrize("status", [OrderStatus.PENDING, OrderStatus.IN_PROGRESS])
def test_open_radiology_blocks(status):
    decision = evaluate([order(OrderType.RADIOLOGY, status)])
    assert decision.allowed is False
    assert "RADIOLOGY" in decision.reason
    assert decision.outstanding == ("RADIOLOGY",)


def test_reason_names_every_outstanding_type_once():
    decision = evaluate([
        order(OrderType.RADIOLOGY, OrderStatus.PENDING),
        order(OrderType.LAB, OrderStatus.IN_PROGRESS),
        order(OrderType.LAB, OrderStatus.PENDING),
    ])
    assert decision.reason == "Pending results: LAB, RADIOLOGY"
    assert decision.outstanding == ("LAB", "RADIOLOGY")


def test_resolved_investigations_allow():
    decision = evaluate([
        order(OrderType.LAB, OrderStatus.COMPLETED),
        order(OrderType.RADIOLOGY, OrderStatus.CANCELLED),
    ])
    assert decision.allowed is True


def test_nurse_orders_do_not_gate():
    assert evaluate([order(OrderType.NURSE, OrderStatus.PENDING)]).allowed is True


@pytest.mark.parametrize(
    "orders",
    [
        [],
        [order(OrderType.LAB, OrderStatus.COMPLETED)],
        [order(OrderType.LAB, OrderStatus.COMPLETED), order(OrderType.LAB, OrderStatus.PENDING)],
        [order(OrderType.NURSE, OrderStatus.IN_PROGRESS), order(OrderType.RADIOLOGY, OrderStatus.COMPLETED)],
        [order(OrderType.RADIOLOGY, OrderStatus.IN_PROGRESS)],
    ],
)
def test_blocked_iff_an_investigation_is_unresolved(orders):
    unresolved = any(
        o.order_type in (OrderType.LAB, OrderType.RADIOLOGY)
        and o.status not in (OrderStatus.COMPLETED, OrderStatus.CANCELLED)
        for o in orders
    )
    assert evaluate(orders).allowed is (not unresolved)
