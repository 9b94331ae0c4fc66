# clinic_core/worklist/api/serializers.py
from __future__ import annotations

from rest_framework import serializers


class VisitSummarySerializer(serializers.Serializer):
    id = serializers.UUIDField()
    patient_id = serializers.UUIDField()
    status = serializers.CharField()
    is_urgent = serializers.BooleanField()
    reason = serializers.CharField(allow_blank=True)
    assigned_doctor_id = serializers.IntegerField(allow_null=True)
    created_at = serializers.DateTimeField()
    latest_condition = serializers.CharField(allow_null=True)
    doctor_seen = serializers.BooleanField()
    order_statuses = serializers.ListField(child=serializers.CharField())
    tier = serializers.IntegerField()
    tier_label = serializers.CharField()
