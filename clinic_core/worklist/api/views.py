# clinic_core/worklist/api/views.py
from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.exceptions import ValidationError as DRFValidationError
from rest_framework.response import Response

from clinic_core.common.permissions import ROLE_DOCTOR, WorklistPermission, user_roles
from clinic_core.common.scope import require_scope
from clinic_core.worklist.api.serializers import VisitSummarySerializer
from clinic_core.worklist.selectors import WorklistSelectors


class WorklistViewSet(viewsets.ViewSet):
    """
    Clinician worklist, ranked on every read.
    """
    permission_classes = [WorklistPermission]
    serializer_class = VisitSummarySerializer

    @extend_schema(
        tags=["Worklist"],
        parameters=[
            OpenApiParameter(
                name="doctor",
                type=int,
                required=False,
                description="Restrict to visits assigned to this doctor (or unassigned). "
                "Doctors default to their own id; pass doctor=all for the whole facility.",
            ),
        ],
        responses={200: VisitSummarySerializer(many=True)},
    )
    def list(self, request):
        scope = require_scope(request)

        raw = request.query_params.get("doctor")
        if raw is None:
            doctor_id = request.user.id if ROLE_DOCTOR in user_roles(request.user) else None
        elif raw == "all":
            doctor_id = None
        else:
            try:
                doctor_id = int(raw)
            except ValueError:
                raise DRFValidationError({"doctor": "Must be a user id or 'all'."})

        queue = WorklistSelectors.get_priority_queue(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            doctor_id=doctor_id,
        )
        return Response(VisitSummarySerializer(queue, many=True).data, status=status.HTTP_200_OK)
