# clinic_core/orders/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from clinic_core.orders.models import BatchOrder, OrderLine, OrderLineStatus, OrderStatus, OrderType


class OrderLineCreateSerializer(serializers.Serializer):
    service_code = serializers.SlugField(max_length=64)
    instructions = serializers.CharField(required=False, allow_blank=True)


class BatchOrderCreateSerializer(serializers.Serializer):
    visit_id = serializers.UUIDField()
    order_type = serializers.ChoiceField(choices=OrderType.choices)
    instructions = serializers.CharField(required=False, allow_blank=True, default="")
    lines = OrderLineCreateSerializer(many=True, allow_empty=False)


class OrderLineStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderLineStatus.choices)
    result_payload = serializers.JSONField(required=False, allow_null=True)


class OrderLineSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderLine
        fields = [
            "id",
            "service_code",
            "position",
            "status",
            "instructions",
            "result_payload",
            "completed_at",
            "updated_by_id",
            "version",
        ]
        read_only_fields = fields


class BatchOrderSerializer(serializers.ModelSerializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices, read_only=True)
    resolved_at = serializers.DateTimeField(read_only=True, allow_null=True)
    lines = OrderLineSerializer(many=True, read_only=True)

    class Meta:
        model = BatchOrder
        fields = [
            "id",
            "visit",
            "order_type",
            "status",
            "instructions",
            "ordered_by_id",
            "resolved_at",
            "created_at",
            "lines",
        ]
        read_only_fields = fields
