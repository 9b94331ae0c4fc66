# clinic_core/visits/api/views.py
from __future__ import annotations

from uuid import UUID

from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError as DRFValidationError
from rest_framework.response import Response

from clinic_core.common.api.pagination import paginate
from clinic_core.common.idempotency import remember, replay
from clinic_core.common.permissions import VisitPermission
from clinic_core.common.scope import require_scope
from clinic_core.pharmacy.api.serializers import (
    GateDecisionSerializer,
    MedicationOrderSerializer,
    PrescribeSerializer,
)
from clinic_core.pharmacy.services import PharmacyService
from clinic_core.visits.api.serializers import (
    VisitCompleteSerializer,
    VisitCreateSerializer,
    VisitDetailSerializer,
    VisitFilter,
    VisitSerializer,
    VitalSignsSerializer,
    VitalsInputSerializer,
)
from clinic_core.visits.models import Visit
from clinic_core.visits.selectors import VisitSelectors
from clinic_core.visits.services import VisitService


def _actor_id(request) -> int | None:
    user = getattr(request, "user", None)
    return user.id if user and user.is_authenticated else None


class VisitViewSet(viewsets.ViewSet):
    """
    Thin API layer:
    - scope parsing
    - serializers validation
    - delegates writes to services, reads to selectors
    """
    permission_classes = [VisitPermission]

    # spectacular needs these to type the path parameter
    serializer_class = VisitSerializer
    queryset = Visit.objects.none()
    lookup_value_regex = "[0-9a-fA-F-]{36}"

    @extend_schema(
        tags=["Visits"],
        parameters=[
            OpenApiParameter(name="status", type=str, many=True, required=False),
            OpenApiParameter(name="patient", type=str, required=False),
            OpenApiParameter(name="doctor", type=int, required=False),
        ],
        responses={200: VisitSerializer(many=True)},
    )
    def list(self, request):
        scope = require_scope(request)
        qs = VisitSelectors.visits_in_scope(tenant_id=scope.tenant_id, facility_id=scope.facility_id)

        f = VisitFilter(request.query_params, queryset=qs)
        if not f.is_valid():
            raise DRFValidationError(f.errors)
        return paginate(request, f.qs, VisitSerializer)

    @extend_schema(tags=["Visits"], responses={200: VisitDetailSerializer})
    def retrieve(self, request, pk=None):
        scope = require_scope(request)
        visit = VisitSelectors.get_visit(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            visit_id=UUID(str(pk)),
        )
        return Response(VisitDetailSerializer(visit).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Visits"], request=VisitCreateSerializer, responses={201: VisitSerializer})
    def create(self, request):
        scope = require_scope(request)

        cached = replay(request, scope)
        if cached is not None:
            return cached

        ser = VisitCreateSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        visit = VisitService.create_visit(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            actor_user_id=_actor_id(request),
            **ser.validated_data,
        )
        return remember(request, scope, Response(VisitSerializer(visit).data, status=status.HTTP_201_CREATED))

    # ------------------------------------------------------------
    # Workflow
    # ------------------------------------------------------------
    @extend_schema(tags=["Visits"], request=VitalsInputSerializer, responses={201: VitalSignsSerializer})
    @action(detail=True, methods=["post"], url_path="triage")
    def triage(self, request, pk=None):
        scope = require_scope(request)

        ser = VitalsInputSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        visit, vitals = VisitService.record_triage(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            visit_id=UUID(str(pk)),
            actor_user_id=_actor_id(request),
            vitals=ser.validated_data,
        )
        return Response(
            {"visit": VisitSerializer(visit).data, "vitals": VitalSignsSerializer(vitals).data},
            status=status.HTTP_201_CREATED,
        )

    @extend_schema(tags=["Visits"], request=None, responses={200: VisitSerializer})
    @action(detail=True, methods=["post"], url_path="open")
    def open(self, request, pk=None):
        scope = require_scope(request)
        visit = VisitService.open_visit(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            visit_id=UUID(str(pk)),
            actor_user_id=_actor_id(request),
        )
        return Response(VisitSerializer(visit).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Visits"], request=VisitCompleteSerializer, responses={200: VisitDetailSerializer})
    @action(detail=True, methods=["post"], url_path="complete")
    def complete(self, request, pk=None):
        scope = require_scope(request)

        ser = VisitCompleteSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        visit = VisitService.complete_visit(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            visit_id=UUID(str(pk)),
            actor_user_id=_actor_id(request),
            diagnosis={
                "summary": data["summary"],
                "details": data.get("details", ""),
                "patient_instructions": data.get("patient_instructions", ""),
            },
            prescriptions=data.get("prescriptions") or [],
            has_pending_prescriptions=data.get("has_pending_prescriptions", False),
        )
        return Response(VisitDetailSerializer(visit).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Visits"], request=None, responses={200: VisitSerializer})
    @action(detail=True, methods=["post"], url_path="cancel")
    def cancel(self, request, pk=None):
        scope = require_scope(request)
        visit = VisitService.cancel_visit(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            visit_id=UUID(str(pk)),
            actor_user_id=_actor_id(request),
        )
        return Response(VisitSerializer(visit).data, status=status.HTTP_200_OK)

    # ------------------------------------------------------------
    # Pharmacy
    # ------------------------------------------------------------
    @extend_schema(tags=["Pharmacy"], responses={200: GateDecisionSerializer})
    @action(detail=True, methods=["get"], url_path="medication-gate")
    def medication_gate(self, request, pk=None):
        scope = require_scope(request)
        decision = PharmacyService.check_medication_gate(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            visit_id=UUID(str(pk)),
        )
        return Response(GateDecisionSerializer(decision.as_dict()).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Pharmacy"], request=PrescribeSerializer, responses={201: MedicationOrderSerializer(many=True)})
    @action(detail=True, methods=["post"], url_path="prescriptions")
    def prescriptions(self, request, pk=None):
        scope = require_scope(request)

        ser = PrescribeSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        orders = PharmacyService.prescribe(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            visit_id=UUID(str(pk)),
            actor_user_id=_actor_id(request),
            prescriptions=ser.validated_data["prescriptions"],
        )
        return Response(MedicationOrderSerializer(orders, many=True).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Pharmacy"], request=None, responses={200: VisitSerializer})
    @action(detail=True, methods=["post"], url_path="dispensed")
    def dispensed(self, request, pk=None):
        scope = require_scope(request)
        visit = PharmacyService.mark_dispensed(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            visit_id=UUID(str(pk)),
            actor_user_id=_actor_id(request),
        )
        return Response(VisitSerializer(visit).data, status=status.HTTP_200_OK)
