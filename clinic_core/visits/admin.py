# clinic_core/visits/admin.py
from __future__ import annotations

from django.contrib import admin

from clinic_core.visits.models import DiagnosisNote, Visit, VitalSigns


class VitalSignsInline(admin.TabularInline):
    model = VitalSigns
    extra = 0
    fields = ("condition", "temperature_c", "pulse_bpm", "spo2", "recorded_by_id", "created_at")
    readonly_fields = fields
    can_delete = False


@admin.register(Visit)
class VisitAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "tenant_id",
        "facility_id",
        "patient_id",
        "status",
        "is_urgent",
        "assigned_doctor_id",
        "triaged_at",
        "doctor_seen_at",
        "created_at",
    )
    list_filter = ("status", "is_urgent")
    search_fields = ("id", "patient_id")
    ordering = ("-created_at",)
    # status is owned by the visit state machine
    readonly_fields = (
        "status",
        "version",
        "triaged_at",
        "doctor_seen_at",
        "results_ready",
        "nurse_work_ready",
        "completed_at",
        "cancelled_at",
        "created_at",
        "updated_at",
    )
    inlines = [VitalSignsInline]


@admin.register(VitalSigns)
class VitalSignsAdmin(admin.ModelAdmin):
    list_display = ("id", "visit", "condition", "recorded_by_id", "created_at")
    list_filter = ("condition",)
    search_fields = ("id", "visit__id")
    readonly_fields = ("created_at", "updated_at")


@admin.register(DiagnosisNote)
class DiagnosisNoteAdmin(admin.ModelAdmin):
    list_display = ("id", "visit", "summary", "authored_by_id", "finalized_at")
    search_fields = ("id", "visit__id", "summary")
    readonly_fields = ("finalized_at", "created_at", "updated_at")
