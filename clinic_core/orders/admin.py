# clinic_core/orders/admin.py
from __future__ import annotations

from django.contrib import admin

from clinic_core.orders.models import BatchOrder, OrderLine


class OrderLineInline(admin.TabularInline):
    model = OrderLine
    extra = 0
    fields = ("id", "position", "service_code", "status", "completed_at", "version")
    readonly_fields = fields
    can_delete = False


@admin.register(BatchOrder)
class BatchOrderAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "tenant_id",
        "facility_id",
        "visit",
        "order_type",
        "aggregate_status",
        "created_at",
    )
    list_filter = ("order_type",)
    search_fields = ("id", "visit__id")
    ordering = ("-created_at",)
    readonly_fields = ("created_at", "updated_at")
    list_select_related = ("visit",)
    inlines = [OrderLineInline]

    @admin.display(description="Status")
    def aggregate_status(self, obj):
        return obj.status


@admin.register(OrderLine)
class OrderLineAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "tenant_id",
        "facility_id",
        "batch_order",
        "visit",
        "service_code",
        "status",
        "version",
        "updated_at",
    )
    list_filter = ("status",)
    search_fields = ("id", "batch_order__id", "visit__id", "service_code")
    ordering = ("-created_at",)
    # status moves only through OrderService
    readonly_fields = ("status", "version", "completed_at", "created_at", "updated_at")
    list_select_related = ("batch_order", "visit")
