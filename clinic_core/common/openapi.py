# clinic_core/common/openapi.py
from __future__ import annotations

from drf_spectacular.openapi import AutoSchema
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter


class ClinicAutoSchema(AutoSchema):
    """
    Global OpenAPI improvements for the clinic workflow API:

    - Adds scope headers (X-Tenant-Id, X-Facility-Id) to every scoped endpoint
    - Adds the optional Idempotency-Key header to unsafe methods
    - Skips scope headers for schema/docs endpoints
    """

    SCOPE_HEADERS = [
        OpenApiParameter(
            name="X-Tenant-Id",
            type=OpenApiTypes.UUID,
            location=OpenApiParameter.HEADER,
            required=True,
            description="Tenant scope UUID.",
        ),
        OpenApiParameter(
            name="X-Facility-Id",
            type=OpenApiTypes.UUID,
            location=OpenApiParameter.HEADER,
            required=True,
            description="Facility scope UUID.",
        ),
    ]

    IDEMPOTENCY_HEADER = OpenApiParameter(
        name="Idempotency-Key",
        type=OpenApiTypes.STR,
        location=OpenApiParameter.HEADER,
        required=False,
        description="Optional idempotency key for safely retrying POST requests.",
    )

    def _is_unscoped_endpoint(self) -> bool:
        view = getattr(self, "view", None)
        if view is None:
            return False
        return view.__class__.__name__ in {"SpectacularAPIView", "SpectacularSwaggerView"}

    def get_override_parameters(self):
        params = list(super().get_override_parameters() or [])
        existing = {p.name.lower() for p in params}

        if self.method in ("POST", "PUT", "PATCH") and "idempotency-key" not in existing:
            params.append(self.IDEMPOTENCY_HEADER)

        if not self._is_unscoped_endpoint():
            for p in self.SCOPE_HEADERS:
                if p.name.lower() not in existing:
                    params.append(p)

        return params
