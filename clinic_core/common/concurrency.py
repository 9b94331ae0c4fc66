# clinic_core/common/concurrency.py
from __future__ import annotations

import functools
import logging

from django.conf import settings
from django.db import models

from clinic_core.common.errors import ConcurrentModification

logger = logging.getLogger(__name__)


def conflict_retry_attempts() -> int:
    config = getattr(settings, "CLINIC_WORKFLOW", {}) or {}
    return int(config.get("CONFLICT_RETRY_ATTEMPTS", 3))


def compare_and_set(model_cls: type[models.Model], *, pk, version: int, **changes) -> int:
    """
    Conditional write: UPDATE ... SET changes, version = version + 1
    WHERE id = pk AND version = <expected>.

    Returns the new version. Raises ConcurrentModification when another
    writer got there first (zero rows matched).
    """
    updated = model_cls.objects.filter(pk=pk, version=version).update(
        version=version + 1,
        **changes,
    )
    if updated != 1:
        raise ConcurrentModification(
            details={"entity": model_cls.__name__, "id": str(pk), "expected_version": version},
        )
    return version + 1


def retry_on_conflict(fn=None, *, attempts: int | None = None):
    """
    Re-run a whole read-modify-write operation on ConcurrentModification.

    The wrapped callable must open its own transaction (services do, via
    @transaction.atomic) so each attempt reads fresh state.
    """
    def _decorator(func):
        @functools.wraps(func)
        def _wrapped(*args, **kwargs):
            max_attempts = attempts or conflict_retry_attempts()
            for attempt in range(1, max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except ConcurrentModification:
                    if attempt >= max_attempts:
                        raise
                    logger.info(
                        "write conflict in %s, retrying (attempt %s/%s)",
                        func.__qualname__,
                        attempt + 1,
                        max_attempts,
                    )
        return _wrapped

    if fn is not None:
        return _decorator(fn)
    return _decorator
