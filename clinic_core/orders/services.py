# clinic_core/orders/services.py
from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from clinic_core.common.concurrency import compare_and_set, retry_on_conflict
from clinic_core.common.errors import InvalidTransition
from clinic_core.common.events import publish_on_commit
from clinic_core.orders.aggregation import aggregate_status, can_transition, is_order_terminal
from clinic_core.orders.models import (
    INVESTIGATION_TYPES,
    BatchOrder,
    OrderLine,
    OrderLineStatus,
    OrderStatus,
    OrderType,
)
from clinic_core.visits.state_machine import VisitStateMachine

logger = logging.getLogger(__name__)


def _batch_status(batch_order: BatchOrder) -> str:
    # always from the database, never from a prefetch cache
    statuses = OrderLine.objects.filter(batch_order_id=batch_order.id).values_list("status", flat=True)
    return aggregate_status(statuses)


def _settle(sm: VisitStateMachine, batch_order: BatchOrder, *, before: str) -> str:
    """
    Feed a batch aggregate change into the visit state machine.
    """
    after = _batch_status(batch_order)

    resolved = not is_order_terminal(before) and is_order_terminal(after)

    # a cancelled investigation is resolved too; cancelled nurse work is not
    if resolved and batch_order.order_type in INVESTIGATION_TYPES:
        sm.investigation_resolved()
    elif resolved and after == OrderStatus.COMPLETED and batch_order.order_type == OrderType.NURSE:
        sm.nurse_work_resolved()
    else:
        sm.recompute()

    if after != before and is_order_terminal(after):
        logger.info("batch order %s resolved as %s", batch_order.id, after)
        publish_on_commit(
            "batch_order.resolved",
            {
                "tenant_id": str(batch_order.tenant_id),
                "facility_id": str(batch_order.facility_id),
                "visit_id": str(batch_order.visit_id),
                "batch_order_id": str(batch_order.id),
                "order_type": batch_order.order_type,
                "status": after,
            },
        )
    return after


class OrderService:
    # ---------------------------------------------------------------------
    # Batch orders
    # ---------------------------------------------------------------------
    @staticmethod
    @retry_on_conflict
    @transaction.atomic
    def create_batch_order(
        *,
        tenant_id: UUID,
        facility_id: UUID,
        visit_id: UUID,
        order_type: str,
        lines: list[dict[str, Any]],
        instructions: str = "",
        actor_user_id: int | None = None,
    ) -> BatchOrder:
        """
        Create a batch with its lines (all PENDING) and move the visit into the
        matching pending status.
        """
        if order_type not in OrderType.values:
            raise ValidationError({"order_type": f"Unknown order type: {order_type}."})
        if not lines:
            raise ValidationError({"lines": "A batch order needs at least one line."})

        sm = VisitStateMachine.load(tenant_id=tenant_id, facility_id=facility_id, visit_id=visit_id)
        sm.as_actor(actor_user_id).ensure_accepts_orders()

        batch = BatchOrder.objects.create(
            tenant_id=tenant_id,
            facility_id=facility_id,
            visit=sm.visit,
            order_type=order_type,
            instructions=instructions or "",
            ordered_by_id=actor_user_id,
        )
        OrderLine.objects.bulk_create(
            [
                OrderLine(
                    tenant_id=tenant_id,
                    facility_id=facility_id,
                    batch_order=batch,
                    visit=sm.visit,
                    service_code=line["service_code"],
                    instructions=line.get("instructions", "") or "",
                    position=i,
                    status=OrderLineStatus.PENDING,
                    updated_by_id=actor_user_id,
                )
                for i, line in enumerate(lines)
            ]
        )

        sm.recompute()
        sm.commit()

        logger.info("batch order %s (%s, %s lines) created for visit %s", batch.id, order_type, len(lines), visit_id)
        publish_on_commit(
            "batch_order.created",
            {
                "tenant_id": str(tenant_id),
                "facility_id": str(facility_id),
                "visit_id": str(visit_id),
                "batch_order_id": str(batch.id),
                "order_type": order_type,
            },
        )
        return batch

    @staticmethod
    @retry_on_conflict
    @transaction.atomic
    def cancel_batch_order(
        *,
        tenant_id: UUID,
        facility_id: UUID,
        batch_order_id: UUID,
        actor_user_id: int | None = None,
    ) -> BatchOrder:
        batch = BatchOrder.objects.get(id=batch_order_id, tenant_id=tenant_id, facility_id=facility_id)

        sm = VisitStateMachine.load(tenant_id=tenant_id, facility_id=facility_id, visit_id=batch.visit_id)
        sm.as_actor(actor_user_id).ensure_not_terminal()

        before = _batch_status(batch)
        if is_order_terminal(before):
            raise InvalidTransition(
                f"Batch order is already {before}.",
                details={"batch_order_id": str(batch.id), "status": before},
            )

        now = timezone.now()
        for line in OrderLine.objects.filter(batch_order=batch).exclude(
            status__in=(OrderLineStatus.COMPLETED, OrderLineStatus.CANCELLED)
        ):
            compare_and_set(
                OrderLine,
                pk=line.id,
                version=line.version,
                status=OrderLineStatus.CANCELLED,
                updated_by_id=actor_user_id,
                updated_at=now,
            )

        _settle(sm, batch, before=before)
        sm.commit()
        return batch

    # ---------------------------------------------------------------------
    # Order lines
    # ---------------------------------------------------------------------
    @staticmethod
    @retry_on_conflict
    @transaction.atomic
    def update_order_line_status(
        *,
        tenant_id: UUID,
        facility_id: UUID,
        order_line_id: UUID,
        new_status: str,
        result_payload: Any = None,
        actor_user_id: int | None = None,
    ) -> BatchOrder:
        """
        Move a line forward (or to CANCELLED), then recompute the batch
        aggregate and the visit status in the same transaction. Returns the
        batch with fresh lines.
        """
        line = OrderLine.objects.select_related("batch_order").get(
            id=order_line_id,
            tenant_id=tenant_id,
            facility_id=facility_id,
        )
        batch = line.batch_order

        sm = VisitStateMachine.load(tenant_id=tenant_id, facility_id=facility_id, visit_id=line.visit_id)
        sm.as_actor(actor_user_id)

        if not can_transition(line.status, new_status):
            logger.warning("order line %s: rejected %s -> %s", line.id, line.status, new_status)
            raise InvalidTransition(
                f"Order line cannot move from {line.status} to {new_status}.",
                details={"order_line_id": str(line.id), "from": line.status, "to": new_status},
            )

        before = _batch_status(batch)

        now = timezone.now()
        changes: dict[str, Any] = {
            "status": new_status,
            "updated_by_id": actor_user_id,
            "updated_at": now,
        }
        if new_status == OrderLineStatus.COMPLETED:
            changes["completed_at"] = now
        if result_payload is not None:
            changes["result_payload"] = result_payload

        compare_and_set(OrderLine, pk=line.id, version=line.version, **changes)
        logger.info("order line %s: %s -> %s", line.id, line.status, new_status)

        _settle(sm, batch, before=before)
        sm.commit()

        publish_on_commit(
            "order_line.status_changed",
            {
                "tenant_id": str(tenant_id),
                "facility_id": str(facility_id),
                "visit_id": str(line.visit_id),
                "batch_order_id": str(batch.id),
                "order_line_id": str(line.id),
                "from_status": line.status,
                "to_status": new_status,
            },
        )

        return BatchOrder.objects.prefetch_related("lines").get(id=batch.id)
