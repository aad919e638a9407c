from __future__ import annotations

import logging

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from src.config import settings
from src.db import supabase
from src.leads.ingestion import LeadIngestResult, process_lead
from src.leads.registry import get_by_slug
from src.models.lead_webhooks import LeadIngestResponse
from src.observability import incr_metric, log_event


router = APIRouter(prefix="/api/leads", tags=["inbound-leads"])

_FAILURE_STATUS = {
    "auth": status.HTTP_401_UNAUTHORIZED,
    "payload": status.HTTP_400_BAD_REQUEST,
    "internal": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _request_id(request: Request | None) -> str | None:
    if not request:
        return None
    return getattr(getattr(request, "state", None), "request_id", None)


def _client_ip(request: Request) -> str | None:
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else None


def _http_status(result: LeadIngestResult) -> int:
    if result.status != "failed":
        return status.HTTP_200_OK
    return _FAILURE_STATUS.get(result.failure_kind or "internal", status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.post("/inbound/{slug}", response_model=LeadIngestResponse)
async def ingest_lead_webhook(slug: str, request: Request):
    req_id = _request_id(request)
    raw_body = await request.body()
    incr_metric("lead_webhook.received")

    try:
        endpoint = get_by_slug(supabase, slug)
    except Exception as exc:
        log_event(
            "lead_webhook_endpoint_lookup_failed",
            level=logging.ERROR,
            request_id=req_id,
            slug=slug,
            error=str(exc),
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": str(exc) or "Unknown error"},
        )

    if not endpoint:
        incr_metric("lead_webhook.endpoint_not_found")
        log_event("lead_webhook_endpoint_not_found", request_id=req_id, slug=slug)
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"success": False, "error": "Endpoint not found"},
        )

    result = process_lead(
        supabase,
        endpoint,
        raw_body=raw_body,
        headers=dict(request.headers),
        ip_address=_client_ip(request),
        dedup_window_hours=settings.lead_dedup_window_hours,
        api_key_mode=settings.lead_webhook_api_key_match_mode,
        request_id=req_id,
    )
    return JSONResponse(status_code=_http_status(result), content=result.response_body())
