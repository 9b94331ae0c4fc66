# clinic_core/common/spectacular_hooks.py
from __future__ import annotations


def preprocess_exclude_legacy_api(endpoints):
    """
    ROOT_URLCONF mounts the router twice:
      /api/v1/  (primary)
      /api/     (legacy alias)

    Left alone, drf-spectacular documents both and produces duplicate
    operationIds (retrieve2, list2, ...). Keep only /api/v1/*.
    """
    filtered = []
    for path, path_regex, method, callback in endpoints:
        if path.startswith("/api/") and not path.startswith("/api/v1/"):
            continue
        filtered.append((path, path_regex, method, callback))
    return filtered
