"""Prometheus metrics endpoint.

Returns the process-wide registry in Prometheus text exposition format.
Tests read it through a Transaction like any other response, e.g. to
check that a rejected exchange bumped ``oauth_token_requests_total``.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    """Expose all Prometheus metrics in text exposition format."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
