# clinic_core/nursing/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from clinic_core.nursing.models import NurseServiceAssignment


class AssignmentCreateSerializer(serializers.Serializer):
    visit_id = serializers.UUIDField()
    service_code = serializers.SlugField(max_length=64)
    assigned_nurse_id = serializers.IntegerField()
    instructions = serializers.CharField(required=False, allow_blank=True, default="")


class AssignmentCompleteSerializer(serializers.Serializer):
    notes = serializers.CharField(allow_blank=True, trim_whitespace=True)
    expected_version = serializers.IntegerField(required=False, allow_null=True, min_value=1)

    def validate_notes(self, value):
        if not value.strip():
            raise serializers.ValidationError("Completion notes are required.")
        return value


class NurseServiceAssignmentSerializer(serializers.ModelSerializer):
    class Meta:
        model = NurseServiceAssignment
        fields = [
            "id",
            "visit",
            "service_code",
            "assigned_nurse_id",
            "assigned_by_id",
            "status",
            "instructions",
            "completion_notes",
            "completed_at",
            "completed_by_id",
            "version",
            "created_at",
        ]
        read_only_fields = fields
