# clinic_core/common/idempotency.py
from __future__ import annotations

import threading
from typing import Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from rest_framework.response import Response

from clinic_core.common.models import IdempotencyRecord
from clinic_core.common.scope import Scope

HEADER = "HTTP_IDEMPOTENCY_KEY"

_LOCK = threading.Lock()
_STORE: dict[tuple, tuple[int, dict]] = {}  # in-memory store (local dev)


def _use_db() -> bool:
    """
    Durable storage is switched on with COMMON_IDEMPOTENCY_USE_DB = True.
    """
    return bool(getattr(settings, "COMMON_IDEMPOTENCY_USE_DB", False))


def get_key(request) -> Optional[str]:
    # DRF test client: HTTP_IDEMPOTENCY_KEY lands in request.META
    return request.META.get(HEADER) or None


def _identity(request, scope: Scope, key: str) -> dict:
    return {
        "tenant_id": scope.tenant_id,
        "facility_id": scope.facility_id,
        "user_id": int(request.user.id),
        "method": request.method.upper(),
        "path": request.path,
        "idempotency_key": str(key),
    }


def _memory_key(ident: dict) -> tuple:
    return tuple(str(ident[k]) for k in sorted(ident))


def replay(request, scope: Scope) -> Optional[Response]:
    """
    Stored response for a repeated Idempotency-Key, or None on first use.
    """
    key = get_key(request)
    if not key:
        return None
    ident = _identity(request, scope, key)

    if not _use_db():
        with _LOCK:
            hit = _STORE.get(_memory_key(ident))
        return None if hit is None else Response(hit[1], status=hit[0])

    rec = IdempotencyRecord.objects.filter(**ident).order_by("-created_at").first()
    return None if rec is None else Response(rec.response_data, status=rec.status_code)


def remember(request, scope: Scope, response: Response) -> Response:
    """
    Store a successful response under the request's Idempotency-Key (if any).
    """
    key = get_key(request)
    if not key:
        return response
    ident = _identity(request, scope, key)

    if not _use_db():
        with _LOCK:
            _STORE.setdefault(_memory_key(ident), (response.status_code, response.data))
        return response

    try:
        with transaction.atomic():
            IdempotencyRecord.objects.create(
                status_code=response.status_code,
                response_data=response.data,
                **ident,
            )
    except IntegrityError:
        # a concurrent request with the same key stored first; keep its response
        pass
    return response
