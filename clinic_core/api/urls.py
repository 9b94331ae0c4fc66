# clinic_core/api/urls.py
from __future__ import annotations

from django.urls import path
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from clinic_core.nursing.api.views import NurseAssignmentViewSet
from clinic_core.orders.api.views import BatchOrderViewSet, OrderLineViewSet
from clinic_core.visits.api.views import VisitViewSet
from clinic_core.worklist.api.views import WorklistViewSet

router = DefaultRouter()

router.register(r"visits", VisitViewSet, basename="visits")
router.register(r"batch-orders", BatchOrderViewSet, basename="batch-orders")
router.register(r"order-lines", OrderLineViewSet, basename="order-lines")
router.register(r"nurse-assignments", NurseAssignmentViewSet, basename="nurse-assignments")
router.register(r"worklist", WorklistViewSet, basename="worklist")

urlpatterns = [
    # Token issuance is simplejwt's own; users and groups live in django.contrib.auth
    path("auth/token/", TokenObtainPairView.as_view(), name="token-obtain"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token-refresh"),

    # Router URLs last (so explicit paths win if ever overlapping)
    *router.urls,
]
