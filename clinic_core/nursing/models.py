# clinic_core/nursing/models.py
from django.db import models

from clinic_core.common.models import VersionedScopedModel
from clinic_core.visits.models import Visit


class AssignmentStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    COMPLETED = "COMPLETED", "Completed"
    CANCELLED = "CANCELLED", "Cancelled"


TERMINAL_ASSIGNMENT_STATUSES = frozenset({AssignmentStatus.COMPLETED, AssignmentStatus.CANCELLED})


class NurseServiceAssignment(VersionedScopedModel):
    """
    A nurse service assigned to one named nurse.

    PENDING -> COMPLETED is one-way; completion writes status, notes and
    timestamp in a single conditional update.
    """
    visit = models.ForeignKey(Visit, on_delete=models.CASCADE, related_name="nurse_assignments")
    service_code = models.SlugField(max_length=64)

    assigned_nurse_id = models.BigIntegerField(db_index=True)
    assigned_by_id = models.BigIntegerField(null=True, blank=True)

    status = models.CharField(
        max_length=16,
        choices=AssignmentStatus.choices,
        default=AssignmentStatus.PENDING,
        db_index=True,
    )
    instructions = models.TextField(blank=True, default="")

    completion_notes = models.TextField(blank=True, default="")
    completed_at = models.DateTimeField(null=True, blank=True)
    completed_by_id = models.BigIntegerField(null=True, blank=True)

    class Meta:
        db_table = "nursing_service_assignment"
        indexes = [
            models.Index(fields=["tenant_id", "facility_id", "visit", "status"]),
            models.Index(fields=["tenant_id", "facility_id", "assigned_nurse_id", "status"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=~models.Q(status="COMPLETED")
                | (models.Q(completed_at__isnull=False) & ~models.Q(completion_notes="")),
                name="ck_nurse_assignment_completion_fields",
            ),
        ]

    def __str__(self) -> str:
        return f"NurseServiceAssignment({self.service_code}, {self.status})"

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_ASSIGNMENT_STATUSES
