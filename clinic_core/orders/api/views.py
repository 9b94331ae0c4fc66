# clinic_core/orders/api/views.py
from __future__ import annotations

from uuid import UUID

from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from clinic_core.common.api.pagination import paginate
from clinic_core.common.idempotency import remember, replay
from clinic_core.common.permissions import BatchOrderPermission, OrderLinePermission
from clinic_core.common.scope import require_scope
from clinic_core.orders.api.serializers import (
    BatchOrderCreateSerializer,
    BatchOrderSerializer,
    OrderLineStatusSerializer,
)
from clinic_core.orders.models import BatchOrder, OrderLine
from clinic_core.orders.selectors import OrderSelector
from clinic_core.orders.services import OrderService


def _actor_id(request) -> int | None:
    user = getattr(request, "user", None)
    return user.id if user and user.is_authenticated else None


class BatchOrderViewSet(viewsets.ViewSet):
    """
    Thin API layer:
    - scope parsing
    - idempotency caching
    - serializers validation
    - delegates writes to OrderService, reads to OrderSelector
    """
    permission_classes = [BatchOrderPermission]

    serializer_class = BatchOrderSerializer
    queryset = BatchOrder.objects.none()
    lookup_value_regex = "[0-9a-fA-F-]{36}"

    @extend_schema(request=BatchOrderCreateSerializer, responses={201: BatchOrderSerializer}, tags=["Orders"])
    def create(self, request):
        scope = require_scope(request)

        cached = replay(request, scope)
        if cached is not None:
            return cached

        ser = BatchOrderCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        batch = OrderService.create_batch_order(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            visit_id=data["visit_id"],
            order_type=data["order_type"],
            lines=data["lines"],
            instructions=data.get("instructions", ""),
            actor_user_id=_actor_id(request),
        )

        # re-read with prefetch so the aggregate reflects the stored lines
        obj = OrderSelector.get_batch_order(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            batch_order_id=batch.id,
        )
        return remember(request, scope, Response(BatchOrderSerializer(obj).data, status=status.HTTP_201_CREATED))

    @extend_schema(responses={200: BatchOrderSerializer}, tags=["Orders"])
    def retrieve(self, request, pk=None):
        scope = require_scope(request)
        obj = OrderSelector.get_batch_order(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            batch_order_id=UUID(str(pk)),
        )
        return Response(BatchOrderSerializer(obj).data, status=status.HTTP_200_OK)

    @extend_schema(
        responses={200: BatchOrderSerializer(many=True)},
        tags=["Orders"],
        parameters=[
            OpenApiParameter(name="visit", type=str, required=False),
            OpenApiParameter(name="order_type", type=str, required=False),
        ],
    )
    def list(self, request):
        scope = require_scope(request)
        qs = OrderSelector.list_batch_orders(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            visit_id=request.query_params.get("visit") or None,
            order_type=request.query_params.get("order_type") or None,
        )
        return paginate(request, qs, BatchOrderSerializer)

    @extend_schema(request=None, responses={200: BatchOrderSerializer}, tags=["Orders"])
    @action(detail=True, methods=["post"], url_path="cancel")
    def cancel(self, request, pk=None):
        scope = require_scope(request)
        batch = OrderService.cancel_batch_order(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            batch_order_id=UUID(str(pk)),
            actor_user_id=_actor_id(request),
        )
        obj = OrderSelector.get_batch_order(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            batch_order_id=batch.id,
        )
        return Response(BatchOrderSerializer(obj).data, status=status.HTTP_200_OK)


class OrderLineViewSet(viewsets.ViewSet):
    permission_classes = [OrderLinePermission]

    serializer_class = OrderLineStatusSerializer
    queryset = OrderLine.objects.none()
    lookup_value_regex = "[0-9a-fA-F-]{36}"

    @extend_schema(request=OrderLineStatusSerializer, responses={200: BatchOrderSerializer}, tags=["Orders"])
    @action(detail=True, methods=["post"], url_path="status")
    def update_status(self, request, pk=None):
        scope = require_scope(request)

        ser = OrderLineStatusSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        batch = OrderService.update_order_line_status(
            tenant_id=scope.tenant_id,
            facility_id=scope.facility_id,
            order_line_id=UUID(str(pk)),
            new_status=ser.validated_data["status"],
            result_payload=ser.validated_data.get("result_payload"),
            actor_user_id=_actor_id(request),
        )
        return Response(BatchOrderSerializer(batch).data, status=status.HTTP_200_OK)
