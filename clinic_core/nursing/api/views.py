# clinic_core/nursing/api/views.py
from __future__ import annotations

from uuid import UUID

from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from clinic_core.common.api.pagination import paginate
from clinic_core.common.idempotency import remember, replay
from clinic_core.common.permissions import (
    ROLE_NURSE,
    NurseAssignmentPermission,
    has_override,
    user_roles,
)
from clinic_core.common.scope import require_scope
from clinic_core.nursing.api.serializers import (
    AssignmentCompleteSerializer,
    AssignmentCreateSerializer,
    NurseServiceAssignmentSerializer,
)
from clinic_core.nursing.models import NurseServiceAssignment
from clinic_core.nursing.selectors import NursingSelector
from clinic_core.nursing.services import NursingService
from clinic_core.visits.api.serializers import VisitSerializer


class NurseAssignmentViewSet(viewsets.ViewSet):
    permission_classes = [NurseAssignmentPermission]

    serializer_class = NurseServiceAssignmentSerializer
    queryset = NurseServiceAssignment.objects.none()
    lookup_value_regex = "[0-9a-fA-F-]{36}"

    @extend_schema(
        tags=["Nursing"],
        parameters=[
            OpenApiParameter(name="visit", type=str, required=False),
            OpenApiParameter(name="status", type=str, required=False),
            OpenApiParameter(name="mine", type=bool, required=False),
        ],
        responses={200: NurseServiceAssignmentSerializer(many=True)},
    )
    def list(self, request):
        """
        Nurses get their own assignments by default; `mine=0` lists everyone's.
        """
        scope = require_scope(request)

        mine_param = request.query_params.get("mine")
        if mine_param is None:
            mine = ROLE_NURSE in user_roles(request.user)
        else:
            mine = mine_param.lower() in ("1", "true", "yes")

        qs = NursingSelector.list_assignments(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            visit_id=request.query_params.get("visit") or None,
            assigned_nurse_id=request.user.id if mine else None,
            status=request.query_params.get("status") or None,
        )
        return paginate(request, qs, NurseServiceAssignmentSerializer)

    @extend_schema(tags=["Nursing"], responses={200: NurseServiceAssignmentSerializer})
    def retrieve(self, request, pk=None):
        scope = require_scope(request)
        obj = NursingSelector.get_assignment(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            assignment_id=UUID(str(pk)),
        )
        return Response(NurseServiceAssignmentSerializer(obj).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Nursing"], request=AssignmentCreateSerializer, responses={201: NurseServiceAssignmentSerializer})
    def create(self, request):
        scope = require_scope(request)

        cached = replay(request, scope)
        if cached is not None:
            return cached

        ser = AssignmentCreateSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        obj = NursingService.issue_assignment(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            visit_id=data["visit_id"],
            service_code=data["service_code"],
            assigned_nurse_id=data["assigned_nurse_id"],
            instructions=data.get("instructions", ""),
            actor_user_id=request.user.id,
        )
        return remember(
            request, scope, Response(NurseServiceAssignmentSerializer(obj).data, status=status.HTTP_201_CREATED)
        )

    @extend_schema(tags=["Nursing"], request=AssignmentCompleteSerializer, responses={200: VisitSerializer})
    @action(detail=True, methods=["post"], url_path="complete")
    def complete(self, request, pk=None):
        scope = require_scope(request)

        ser = AssignmentCompleteSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        assignment_id = UUID(str(pk))
        visit = NursingService.complete_assignment(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            assignment_id=assignment_id,
            acting_user_id=request.user.id,
            notes=ser.validated_data["notes"],
            override=has_override(request.user),
            expected_version=ser.validated_data.get("expected_version"),
        )
        assignment = NursingSelector.get_assignment(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            assignment_id=assignment_id,
        )
        return Response(
            {
                "visit": VisitSerializer(visit).data,
                "assignment": NurseServiceAssignmentSerializer(assignment).data,
            },
            status=status.HTTP_200_OK,
        )

    @extend_schema(tags=["Nursing"], request=None, responses={200: NurseServiceAssignmentSerializer})
    @action(detail=True, methods=["post"], url_path="cancel")
    def cancel(self, request, pk=None):
        scope = require_scope(request)
        obj = NursingService.cancel_assignment(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            assignment_id=UUID(str(pk)),
            actor_user_id=request.user.id,
        )
        return Response(NurseServiceAssignmentSerializer(obj).data, status=status.HTTP_200_OK)
