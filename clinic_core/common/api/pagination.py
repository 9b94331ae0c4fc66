# clinic_core/common/api/pagination.py
from __future__ import annotations

from django.conf import settings
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class DefaultPagination(PageNumberPagination):
    """
    Page size comes from CLINIC_WORKFLOW["PAGE_SIZE"]; clients may ask for
    up to max_page_size with ?page_size=.
    """
    page_size_query_param = "page_size"
    max_page_size = 200

    @property
    def page_size(self) -> int:
        config = getattr(settings, "CLINIC_WORKFLOW", {}) or {}
        return int(config.get("PAGE_SIZE", 20))


def paginate(request, queryset, serializer_class) -> Response:
    """
    List responses always use the { count, next, previous, results } contract.
    """
    p = DefaultPagination()
    page = p.paginate_queryset(queryset, request)
    return p.get_paginated_response(serializer_class(page, many=True).data)
