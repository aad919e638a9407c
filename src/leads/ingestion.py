"""Inbound lead processing: credentials, parsing, dedup, persistence, audit.

Every call to ``process_lead`` writes exactly one ``lead_webhook_log`` row,
whatever the outcome. The dedup check is a plain read before the insert, so
two simultaneous submissions of the same email can both create a customer.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Literal, Mapping

from src.domain.lead_mapping import ParsedLead, parse_lead
from src.domain.lead_signatures import ApiKeyMatchMode, check_credentials
from src.leads.audit import write_lead_log
from src.leads.opportunities import OpportunityOutcome, create_opportunity_from_lead
from src.leads.registry import is_unique_violation, record_lead_received
from src.observability import incr_metric, log_event


IngestStatus = Literal["success", "failed", "duplicate"]
FailureKind = Literal["auth", "payload", "internal"]

INVALID_CREDENTIALS = "Invalid credentials"
INVALID_PAYLOAD = "Invalid JSON payload"
DUPLICATE_LEAD = "Duplicate lead"


@dataclass(frozen=True)
class LeadIngestResult:
    status: IngestStatus
    customer_id: str | None = None
    opportunity: OpportunityOutcome | None = None
    reason: str | None = None
    failure_kind: FailureKind | None = None

    @property
    def success(self) -> bool:
        return self.status in ("success", "duplicate")

    @property
    def opportunity_id(self) -> str | None:
        return self.opportunity.opportunity_id if self.opportunity else None

    def public_error(self) -> str | None:
        if self.status != "failed":
            return None
        if self.failure_kind == "auth":
            return INVALID_CREDENTIALS
        return self.reason or "Unknown error"

    def response_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": self.success}
        if self.customer_id:
            body["customerId"] = self.customer_id
        error = self.public_error()
        if error:
            body["error"] = error
        return body


def decode_payload(raw_body: bytes) -> tuple[Any, bool]:
    """Body as JSON when possible; otherwise the raw text, kept for the audit row."""
    text = raw_body.decode("utf-8", errors="replace")
    try:
        return json.loads(text), True
    except (ValueError, RecursionError):
        # Also raised for oversized integer literals and runaway nesting.
        return {"_raw": text}, False


def find_recent_customer(
    supabase_client: Any,
    organization_id: str,
    email: str,
    window: timedelta,
    now: datetime | None = None,
) -> dict[str, Any] | None:
    cutoff = (now or datetime.now(timezone.utc)) - window
    result = (
        supabase_client.table("customers")
        .select("id")
        .eq("organization_id", organization_id)
        .eq("email", email)
        .gte("created_at", cutoff.isoformat())
        .limit(1)
        .execute()
    )
    return result.data[0] if result.data else None


def _insert_customer(
    supabase_client: Any,
    endpoint: Mapping[str, Any],
    lead: ParsedLead,
) -> dict[str, Any]:
    row = {
        "organization_id": endpoint["organization_id"],
        **lead.contact_fields(),
        "lead_source": endpoint["provider"],
        "status": "lead",
    }
    result = supabase_client.table("customers").insert(row).execute()
    return result.data[0]


def _ingest(
    supabase_client: Any,
    endpoint: Mapping[str, Any],
    *,
    raw_body: bytes,
    payload: Any,
    headers: Mapping[str, str],
    dedup_window: timedelta,
    api_key_mode: ApiKeyMatchMode,
    request_id: str | None,
) -> LeadIngestResult:
    failure = check_credentials(endpoint, raw_body, headers, api_key_mode)
    if failure:
        return LeadIngestResult(status="failed", reason=failure, failure_kind="auth")

    if not isinstance(payload, dict):
        return LeadIngestResult(status="failed", reason=INVALID_PAYLOAD, failure_kind="payload")

    lead = parse_lead(payload, endpoint.get("field_mapping") or {})
    organization_id = endpoint["organization_id"]

    if lead.email:
        existing = find_recent_customer(supabase_client, organization_id, lead.email, dedup_window)
        if existing:
            return LeadIngestResult(status="duplicate", customer_id=existing["id"], reason=DUPLICATE_LEAD)

    try:
        customer = _insert_customer(supabase_client, endpoint, lead)
    except Exception as exc:
        # A storage-level uniqueness guard, when present, reports the race the read missed.
        if not (lead.email and is_unique_violation(exc)):
            raise
        existing = find_recent_customer(supabase_client, organization_id, lead.email, dedup_window)
        if not existing:
            raise
        return LeadIngestResult(status="duplicate", customer_id=existing["id"], reason=DUPLICATE_LEAD)

    opportunity = create_opportunity_from_lead(
        supabase_client,
        organization_id,
        customer["id"],
        lead,
        endpoint["provider"],
        request_id=request_id,
    )
    record_lead_received(supabase_client, dict(endpoint))

    return LeadIngestResult(status="success", customer_id=customer["id"], opportunity=opportunity)


def process_lead(
    supabase_client: Any,
    endpoint: Mapping[str, Any],
    *,
    raw_body: bytes,
    headers: Mapping[str, str],
    ip_address: str | None = None,
    dedup_window_hours: int = 24,
    api_key_mode: ApiKeyMatchMode = "contains",
    request_id: str | None = None,
) -> LeadIngestResult:
    payload, is_json = decode_payload(raw_body)
    try:
        result = _ingest(
            supabase_client,
            endpoint,
            raw_body=raw_body,
            payload=payload if is_json else None,
            headers=headers,
            dedup_window=timedelta(hours=dedup_window_hours),
            api_key_mode=api_key_mode,
            request_id=request_id,
        )
    except Exception as exc:
        log_event(
            "lead_webhook_processing_failed",
            level=logging.ERROR,
            request_id=request_id,
            endpoint_id=endpoint.get("id"),
            organization_id=endpoint.get("organization_id"),
            error=str(exc),
        )
        result = LeadIngestResult(status="failed", reason=str(exc) or "Unknown error", failure_kind="internal")

    write_lead_log(
        supabase_client,
        endpoint=endpoint,
        raw_payload=payload,
        headers=headers,
        ip_address=ip_address,
        status=result.status,
        error_message=result.reason,
        customer_id=result.customer_id,
        opportunity_id=result.opportunity_id,
        request_id=request_id,
    )

    incr_metric("lead_webhook.outcome", status=result.status, provider=endpoint.get("provider"))
    log_event(
        "lead_webhook_processed",
        level=logging.WARNING if result.status == "failed" else logging.INFO,
        request_id=request_id,
        endpoint_id=endpoint.get("id"),
        organization_id=endpoint.get("organization_id"),
        provider=endpoint.get("provider"),
        status=result.status,
        reason=result.reason,
        customer_id=result.customer_id,
        opportunity_id=result.opportunity_id,
        opportunity_skipped=result.opportunity.skipped_reason if result.opportunity else None,
    )
    return result
