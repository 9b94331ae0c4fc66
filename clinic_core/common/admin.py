# clinic_core/common/admin.py
from __future__ import annotations

from django.contrib import admin

from clinic_core.common.models import IdempotencyRecord


@admin.register(IdempotencyRecord)
class IdempotencyRecordAdmin(admin.ModelAdmin):
    list_display = ("id", "tenant_id", "facility_id", "user_id", "method", "path", "idempotency_key", "created_at")
    search_fields = ("idempotency_key", "path")
    ordering = ("-created_at",)
    readonly_fields = ("response_data", "status_code", "created_at", "updated_at")
