# clinic_core/pharmacy/models.py
from django.db import models

from clinic_core.common.models import ScopedModel
from clinic_core.visits.models import Visit


class MedicationOrderStatus(models.TextChoices):
    PENDING = "PENDING", "Pending dispensation"
    DISPENSED = "DISPENSED", "Dispensed"
    CANCELLED = "CANCELLED", "Cancelled"


class MedicationOrder(ScopedModel):
    """
    A prescription line. Written only after the medication gate re-check passes
    inside the same transaction.
    """
    visit = models.ForeignKey(Visit, on_delete=models.CASCADE, related_name="medication_orders")

    name = models.CharField(max_length=255)
    strength = models.CharField(max_length=64, blank=True, default="")
    dosage_form = models.CharField(max_length=64, blank=True, default="")
    quantity = models.CharField(max_length=64, blank=True, default="")
    frequency = models.CharField(max_length=64, blank=True, default="")
    duration = models.CharField(max_length=64, blank=True, default="")
    instructions = models.TextField(blank=True, default="")

    prescribed_by_id = models.BigIntegerField(null=True, blank=True)
    status = models.CharField(
        max_length=16,
        choices=MedicationOrderStatus.choices,
        default=MedicationOrderStatus.PENDING,
        db_index=True,
    )
    dispensed_at = models.DateTimeField(null=True, blank=True)
    dispensed_by_id = models.BigIntegerField(null=True, blank=True)

    class Meta:
        db_table = "pharmacy_medication_order"
        indexes = [
            models.Index(fields=["tenant_id", "facility_id", "visit", "status"]),
        ]

    def __str__(self) -> str:
        return f"MedicationOrder({self.name}, {self.status})"
