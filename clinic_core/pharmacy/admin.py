# clinic_core/pharmacy/admin.py
from __future__ import annotations

from django.contrib import admin

from clinic_core.pharmacy.models import MedicationOrder


@admin.register(MedicationOrder)
class MedicationOrderAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "tenant_id",
        "facility_id",
        "visit",
        "name",
        "strength",
        "status",
        "dispensed_at",
        "created_at",
    )
    list_filter = ("status",)
    search_fields = ("id", "visit__id", "name")
    ordering = ("-created_at",)
    readonly_fields = ("status", "dispensed_at", "dispensed_by_id", "created_at", "updated_at")
    list_select_related = ("visit",)
