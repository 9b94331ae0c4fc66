# clinic_core/pharmacy/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from clinic_core.pharmacy.models import MedicationOrder


class PrescriptionInputSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    strength = serializers.CharField(max_length=64, required=False, allow_blank=True)
    dosage_form = serializers.CharField(max_length=64, required=False, allow_blank=True)
    quantity = serializers.CharField(max_length=64, required=False, allow_blank=True)
    frequency = serializers.CharField(max_length=64, required=False, allow_blank=True)
    duration = serializers.CharField(max_length=64, required=False, allow_blank=True)
    instructions = serializers.CharField(required=False, allow_blank=True)


class PrescribeSerializer(serializers.Serializer):
    prescriptions = PrescriptionInputSerializer(many=True, allow_empty=False)


class MedicationOrderSerializer(serializers.ModelSerializer):
    class Meta:
        model = MedicationOrder
        fields = [
            "id",
            "visit",
            "name",
            "strength",
            "dosage_form",
            "quantity",
            "frequency",
            "duration",
            "instructions",
            "status",
            "prescribed_by_id",
            "dispensed_at",
            "dispensed_by_id",
            "created_at",
        ]
        read_only_fields = fields


class GateDecisionSerializer(serializers.Serializer):
    allowed = serializers.BooleanField()
    reason = serializers.CharField(allow_blank=True)
    outstanding = serializers.ListField(child=serializers.CharField())
