# clinic_core/common/scope.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from rest_framework.exceptions import ValidationError

MISSING_SCOPE_MSG = "Missing scope headers. Provide X-Tenant-Id and X-Facility-Id."
INVALID_SCOPE_MSG = "Invalid scope headers. X-Tenant-Id and X-Facility-Id must be UUIDs."


@dataclass(frozen=True)
class Scope:
    tenant_id: UUID
    facility_id: UUID


# Preferred header names
HDR_TENANT = "X-Tenant-Id"
HDR_FACILITY = "X-Facility-Id"

# Legacy variants (kept for compatibility)
HDR_TENANT_CLINIC = "X-Clinic-Tenant-Id"
HDR_FACILITY_CLINIC = "X-Clinic-Facility-Id"

TENANT_HEADERS = (HDR_TENANT, HDR_TENANT_CLINIC)
FACILITY_HEADERS = (HDR_FACILITY, HDR_FACILITY_CLINIC)


def _parse_uuid(value) -> Optional[UUID]:
    try:
        return UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        return None


def _get_header(request, name: str) -> Optional[str]:
    """
    request.headers is case-insensitive; fallback to META for pytest/client.
    """
    headers = getattr(request, "headers", None)
    if headers is not None:
        v = headers.get(name)
        if v:
            return v

    meta_key = "HTTP_" + name.upper().replace("-", "_")
    return request.META.get(meta_key)


def _first_header(request, names: tuple[str, ...]) -> Optional[str]:
    for name in names:
        v = _get_header(request, name)
        if v:
            return v
    return None


def resolve_scope(request) -> Optional[Scope]:
    """
    Returns Scope if BOTH headers are present and valid, else None.
    Raises nothing (pure resolver).
    """
    t = getattr(request, "tenant_id", None)
    f = getattr(request, "facility_id", None)
    if t and f:
        tu, fu = _parse_uuid(t), _parse_uuid(f)
        if tu and fu:
            return Scope(tenant_id=tu, facility_id=fu)

    tenant_id = _parse_uuid(_first_header(request, TENANT_HEADERS))
    facility_id = _parse_uuid(_first_header(request, FACILITY_HEADERS))
    if not tenant_id or not facility_id:
        return None
    return Scope(tenant_id=tenant_id, facility_id=facility_id)


def scope_error_message(request) -> str:
    """
    Distinguish missing headers from malformed ones.
    """
    present = _first_header(request, TENANT_HEADERS) and _first_header(request, FACILITY_HEADERS)
    return INVALID_SCOPE_MSG if present else MISSING_SCOPE_MSG


def require_scope(request) -> Scope:
    """
    Resolve scope or raise a 400. Attaches the scope to the request.
    """
    scope = resolve_scope(request)
    if scope is None:
        raise ValidationError({"detail": scope_error_message(request)})

    request.tenant_id = scope.tenant_id
    request.facility_id = scope.facility_id
    request.scope = scope
    return scope
