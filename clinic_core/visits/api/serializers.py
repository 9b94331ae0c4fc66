# clinic_core/visits/api/serializers.py
from __future__ import annotations

import django_filters
from rest_framework import serializers

from clinic_core.pharmacy.api.serializers import PrescriptionInputSerializer
from clinic_core.visits.models import Condition, DiagnosisNote, Visit, VisitStatus, VitalSigns
from clinic_core.visits.selectors import VisitSelectors


class VisitFilter(django_filters.FilterSet):
    status = django_filters.MultipleChoiceFilter(choices=VisitStatus.choices)
    patient = django_filters.UUIDFilter(field_name="patient_id")
    doctor = django_filters.NumberFilter(field_name="assigned_doctor_id")
    created_after = django_filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="gte")

    class Meta:
        model = Visit
        fields = ["status", "patient", "doctor", "is_urgent", "created_after"]


class VisitCreateSerializer(serializers.Serializer):
    patient_id = serializers.UUIDField()
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True)
    is_urgent = serializers.BooleanField(required=False, default=False)
    assigned_doctor_id = serializers.IntegerField(required=False, allow_null=True)


class VitalSignsSerializer(serializers.ModelSerializer):
    class Meta:
        model = VitalSigns
        fields = [
            "id",
            "condition",
            "temperature_c",
            "pulse_bpm",
            "resp_rate",
            "bp_systolic",
            "bp_diastolic",
            "spo2",
            "weight_kg",
            "height_cm",
            "note",
            "recorded_by_id",
            "created_at",
        ]
        read_only_fields = fields


class DiagnosisNoteSerializer(serializers.ModelSerializer):
    class Meta:
        model = DiagnosisNote
        fields = ["summary", "details", "patient_instructions", "authored_by_id", "finalized_at"]
        read_only_fields = fields


class VisitSerializer(serializers.ModelSerializer):
    class Meta:
        model = Visit
        fields = [
            "id",
            "tenant_id",
            "facility_id",
            "patient_id",
            "status",
            "is_urgent",
            "reason",
            "assigned_doctor_id",
            "created_by_id",
            "triaged_at",
            "doctor_seen_at",
            "results_ready",
            "nurse_work_ready",
            "completed_at",
            "cancelled_at",
            "version",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class VisitDetailSerializer(VisitSerializer):
    latest_vitals = serializers.SerializerMethodField()
    diagnosis_note = serializers.SerializerMethodField()

    class Meta(VisitSerializer.Meta):
        fields = VisitSerializer.Meta.fields + ["latest_vitals", "diagnosis_note"]
        read_only_fields = fields

    def get_latest_vitals(self, obj):
        v = VisitSelectors.latest_vitals(tenant_id=obj.tenant_id, facility_id=obj.facility_id, visit_id=obj.id)
        return VitalSignsSerializer(v).data if v else None

    def get_diagnosis_note(self, obj):
        note = DiagnosisNote.objects.filter(visit=obj).first()
        return DiagnosisNoteSerializer(note).data if note else None


class VitalsInputSerializer(serializers.Serializer):
    condition = serializers.ChoiceField(choices=Condition.choices)

    temperature_c = serializers.FloatField(required=False, min_value=25, max_value=45)
    pulse_bpm = serializers.IntegerField(required=False, min_value=20, max_value=250)
    resp_rate = serializers.IntegerField(required=False, min_value=5, max_value=80)

    bp_systolic = serializers.IntegerField(required=False, min_value=50, max_value=300)
    bp_diastolic = serializers.IntegerField(required=False, min_value=30, max_value=200)

    spo2 = serializers.IntegerField(required=False, min_value=0, max_value=100)
    weight_kg = serializers.FloatField(required=False, min_value=0, max_value=500)
    height_cm = serializers.FloatField(required=False, min_value=0, max_value=300)

    note = serializers.CharField(required=False, allow_blank=True, max_length=500)

    def validate(self, attrs):
        sys = attrs.get("bp_systolic")
        dia = attrs.get("bp_diastolic")
        if (sys is None) ^ (dia is None):
            raise serializers.ValidationError("Provide both bp_systolic and bp_diastolic together.")
        return attrs


class VisitCompleteSerializer(serializers.Serializer):
    summary = serializers.CharField(max_length=500)
    details = serializers.CharField(required=False, allow_blank=True)
    patient_instructions = serializers.CharField(required=False, allow_blank=True)
    has_pending_prescriptions = serializers.BooleanField(required=False, default=False)
    prescriptions = PrescriptionInputSerializer(many=True, required=False)

