# clinic_core/orders/models.py
from django.db import models

from clinic_core.common.models import ScopedModel, VersionedScopedModel
from clinic_core.visits.models import Visit


class OrderType(models.TextChoices):
    LAB = "LAB", "Lab"
    RADIOLOGY = "RADIOLOGY", "Radiology"
    NURSE = "NURSE", "Nurse"


# Order types whose results gate prescribing and feed results review.
INVESTIGATION_TYPES = frozenset({OrderType.LAB, OrderType.RADIOLOGY})


class OrderLineStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    QUEUED = "QUEUED", "Queued"
    IN_PROGRESS = "IN_PROGRESS", "In Progress"
    COMPLETED = "COMPLETED", "Completed"
    CANCELLED = "CANCELLED", "Cancelled"


class OrderStatus(models.TextChoices):
    """
    Aggregate status of a BatchOrder. Never stored; see orders.aggregation.
    """
    PENDING = "PENDING", "Pending"
    IN_PROGRESS = "IN_PROGRESS", "In Progress"
    COMPLETED = "COMPLETED", "Completed"
    CANCELLED = "CANCELLED", "Cancelled"


class BatchOrder(ScopedModel):
    """
    Group of services ordered together by a clinician.

    Deliberately has no status column: `status` is derived from the lines.
    """
    visit = models.ForeignKey(Visit, on_delete=models.CASCADE, related_name="batch_orders")
    order_type = models.CharField(max_length=16, choices=OrderType.choices, db_index=True)
    instructions = models.TextField(blank=True, default="")
    ordered_by_id = models.BigIntegerField(null=True, blank=True)

    class Meta:
        db_table = "orders_batch_order"
        indexes = [
            models.Index(fields=["tenant_id", "facility_id", "visit"]),
            models.Index(fields=["tenant_id", "facility_id", "order_type"]),
        ]

    def __str__(self) -> str:
        return f"BatchOrder({self.order_type}, {self.visit_id})"

    @property
    def status(self) -> str:
        from clinic_core.orders.aggregation import aggregate_status

        return aggregate_status(line.status for line in self.lines.all())

    @property
    def resolved_at(self):
        from clinic_core.orders.aggregation import resolved_at

        return resolved_at(self.lines.all())


class OrderLine(VersionedScopedModel):
    batch_order = models.ForeignKey(BatchOrder, on_delete=models.CASCADE, related_name="lines")
    visit = models.ForeignKey(Visit, on_delete=models.CASCADE, related_name="order_lines")

    service_code = models.SlugField(max_length=64)
    position = models.PositiveIntegerField(default=0)
    status = models.CharField(
        max_length=16,
        choices=OrderLineStatus.choices,
        default=OrderLineStatus.PENDING,
        db_index=True,
    )
    instructions = models.TextField(blank=True, default="")
    result_payload = models.JSONField(null=True, blank=True)

    completed_at = models.DateTimeField(null=True, blank=True)
    updated_by_id = models.BigIntegerField(null=True, blank=True)

    class Meta:
        db_table = "orders_order_line"
        ordering = ["position", "created_at"]
        indexes = [
            models.Index(fields=["tenant_id", "facility_id", "batch_order"]),
            models.Index(fields=["tenant_id", "facility_id", "visit", "status"]),
        ]

    def __str__(self) -> str:
        return f"OrderLine({self.service_code}, {self.status})"

    @property
    def order_type(self) -> str:
        return self.batch_order.order_type
