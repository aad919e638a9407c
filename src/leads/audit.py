from __future__ import annotations

import logging
from typing import Any, Mapping

from src.observability import REDACTED, incr_metric, log_event


LOG_TABLE = "lead_webhook_log"
CREDENTIAL_HEADERS = frozenset({"authorization", "x-api-key", "cookie"})


def redact_headers(headers: Mapping[str, str]) -> dict[str, str]:
    return {
        key: REDACTED if key.lower() in CREDENTIAL_HEADERS else value
        for key, value in headers.items()
    }


def write_lead_log(
    supabase_client: Any,
    *,
    endpoint: Mapping[str, Any],
    raw_payload: Any,
    headers: Mapping[str, str],
    ip_address: str | None,
    status: str,
    error_message: str | None = None,
    customer_id: str | None = None,
    opportunity_id: str | None = None,
    request_id: str | None = None,
) -> dict[str, Any] | None:
    """Insert the audit row for one inbound call. Failures are logged, not raised."""
    row = {
        "endpoint_id": endpoint["id"],
        "organization_id": endpoint["organization_id"],
        "raw_payload": raw_payload,
        "headers": redact_headers(headers),
        "ip_address": ip_address,
        "status": status,
        "error_message": error_message,
        "customer_id": customer_id,
        "opportunity_id": opportunity_id,
    }
    try:
        result = supabase_client.table(LOG_TABLE).insert(row).execute()
    except Exception as exc:
        incr_metric("lead_webhook.audit_write_failed")
        log_event(
            "lead_webhook_audit_write_failed",
            level=logging.ERROR,
            request_id=request_id,
            endpoint_id=endpoint["id"],
            status=status,
            error=str(exc),
        )
        return None
    return result.data[0] if result.data else None


def list_lead_logs(
    supabase_client: Any,
    organization_id: str,
    endpoint_id: str,
    *,
    status: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[dict[str, Any]]:
    bounded_limit = max(1, min(limit, 200))
    bounded_offset = max(0, offset)

    query = (
        supabase_client.table(LOG_TABLE)
        .select("*")
        .eq("organization_id", organization_id)
        .eq("endpoint_id", endpoint_id)
    )
    if status:
        query = query.eq("status", status)
    result = (
        query.order("created_at", desc=True)
        .range(bounded_offset, bounded_offset + bounded_limit - 1)
        .execute()
    )
    return result.data or []
