# clinic_core/visits/models.py

from django.db import models

from clinic_core.common.models import ScopedModel, VersionedScopedModel


class VisitStatus(models.TextChoices):
    WAITING_FOR_TRIAGE = "WAITING_FOR_TRIAGE", "Waiting for triage"
    TRIAGED = "TRIAGED", "Triaged"
    WAITING_FOR_DOCTOR = "WAITING_FOR_DOCTOR", "Waiting for doctor"
    UNDER_DOCTOR_REVIEW = "UNDER_DOCTOR_REVIEW", "Under doctor review"
    SENT_TO_LAB = "SENT_TO_LAB", "Sent to lab"
    SENT_TO_RADIOLOGY = "SENT_TO_RADIOLOGY", "Sent to radiology"
    SENT_TO_BOTH = "SENT_TO_BOTH", "Sent to lab and radiology"
    NURSE_SERVICES_PENDING = "NURSE_SERVICES_PENDING", "Nurse services pending"
    NURSE_SERVICES_COMPLETED = "NURSE_SERVICES_COMPLETED", "Nurse services completed"
    AWAITING_RESULTS_REVIEW = "AWAITING_RESULTS_REVIEW", "Awaiting results review"
    SENT_TO_PHARMACY = "SENT_TO_PHARMACY", "Sent to pharmacy"
    COMPLETED = "COMPLETED", "Completed"
    CANCELLED = "CANCELLED", "Cancelled"


TERMINAL_VISIT_STATUSES = frozenset({VisitStatus.COMPLETED, VisitStatus.CANCELLED})


class Condition(models.TextChoices):
    CRITICAL = "CRITICAL", "Critical"
    URGENT = "URGENT", "Urgent"
    STABLE = "STABLE", "Stable"
    GOOD = "GOOD", "Good"


class Visit(VersionedScopedModel):
    """
    One clinical encounter, tracked end-to-end by status.

    `status` is written only by clinic_core.visits.state_machine.
    """
    patient_id = models.UUIDField(db_index=True)
    assigned_doctor_id = models.BigIntegerField(null=True, blank=True, db_index=True)
    created_by_id = models.BigIntegerField(null=True, blank=True)

    status = models.CharField(
        max_length=32,
        choices=VisitStatus.choices,
        default=VisitStatus.WAITING_FOR_TRIAGE,
        db_index=True,
    )
    is_urgent = models.BooleanField(default=False)
    reason = models.CharField(max_length=255, blank=True, default="")

    triaged_at = models.DateTimeField(null=True, blank=True)
    doctor_seen_at = models.DateTimeField(null=True, blank=True)

    # Review flags: raised on resolution events, cleared when a clinician opens the visit.
    results_ready = models.BooleanField(default=False)
    nurse_work_ready = models.BooleanField(default=False)

    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "visits_visit"
        indexes = [
            models.Index(fields=["tenant_id", "facility_id", "status"]),
            models.Index(fields=["tenant_id", "facility_id", "patient_id"]),
            models.Index(fields=["tenant_id", "facility_id", "created_at"]),
        ]

    def __str__(self) -> str:
        return f"Visit({self.patient_id}, {self.status})"

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_VISIT_STATUSES


class VitalSigns(ScopedModel):
    """
    Triage snapshot. The newest row (created_at, id) is the visit's latest vitals.
    """
    visit = models.ForeignKey(Visit, on_delete=models.CASCADE, related_name="vitals")
    condition = models.CharField(max_length=16, choices=Condition.choices, db_index=True)

    temperature_c = models.FloatField(null=True, blank=True)
    pulse_bpm = models.PositiveIntegerField(null=True, blank=True)
    resp_rate = models.PositiveIntegerField(null=True, blank=True)
    bp_systolic = models.PositiveIntegerField(null=True, blank=True)
    bp_diastolic = models.PositiveIntegerField(null=True, blank=True)
    spo2 = models.PositiveIntegerField(null=True, blank=True)
    weight_kg = models.FloatField(null=True, blank=True)
    height_cm = models.FloatField(null=True, blank=True)
    note = models.CharField(max_length=500, blank=True, default="")

    recorded_by_id = models.BigIntegerField(null=True, blank=True)

    class Meta:
        db_table = "visits_vital_signs"
        indexes = [
            models.Index(fields=["tenant_id", "facility_id", "visit", "created_at"]),
        ]


class DiagnosisNote(ScopedModel):
    """
    Zero-or-one active diagnosis record per visit, written on finalization.
    """
    visit = models.OneToOneField(Visit, on_delete=models.CASCADE, related_name="diagnosis_note")
    summary = models.CharField(max_length=500)
    details = models.TextField(blank=True, default="")
    patient_instructions = models.TextField(blank=True, default="")
    authored_by_id = models.BigIntegerField(null=True, blank=True)
    finalized_at = models.DateTimeField()

    class Meta:
        db_table = "visits_diagnosis_note"
