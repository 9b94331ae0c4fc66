# clinic_core/nursing/admin.py
from __future__ import annotations

from django.contrib import admin

from clinic_core.nursing.models import NurseServiceAssignment


@admin.register(NurseServiceAssignment)
class NurseServiceAssignmentAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "tenant_id",
        "facility_id",
        "visit",
        "service_code",
        "assigned_nurse_id",
        "status",
        "completed_at",
        "version",
    )
    list_filter = ("status",)
    search_fields = ("id", "visit__id", "service_code")
    ordering = ("-created_at",)
    readonly_fields = (
        "status",
        "version",
        "completion_notes",
        "completed_at",
        "completed_by_id",
        "created_at",
        "updated_at",
    )
    list_select_related = ("visit",)
