# clinic_core/orders/selectors.py
from __future__ import annotations

from uuid import UUID

from django.db.models import QuerySet

from clinic_core.orders.models import BatchOrder, OrderLine


class OrderSelector:
    """
    Read model for batch orders. Aggregate status is computed by the model
    property from prefetched lines.
    """

    @staticmethod
    def get_batch_order(*, tenant_id: UUID, facility_id: UUID, batch_order_id: UUID) -> BatchOrder:
        return BatchOrder.objects.prefetch_related("lines").get(
            id=batch_order_id,
            tenant_id=tenant_id,
            facility_id=facility_id,
        )

    @staticmethod
    def list_batch_orders(
        *,
        tenant_id: UUID,
        facility_id: UUID,
        visit_id: UUID | None = None,
        order_type: str | None = None,
    ) -> QuerySet[BatchOrder]:
        qs = BatchOrder.objects.filter(tenant_id=tenant_id, facility_id=facility_id)
        if visit_id:
            qs = qs.filter(visit_id=visit_id)
        if order_type:
            qs = qs.filter(order_type=order_type)
        return qs.prefetch_related("lines").order_by("-created_at", "id")

    @staticmethod
    def get_order_line(*, tenant_id: UUID, facility_id: UUID, order_line_id: UUID) -> OrderLine:
        return OrderLine.objects.select_related("batch_order").get(
            id=order_line_id,
            tenant_id=tenant_id,
            facility_id=facility_id,
        )
