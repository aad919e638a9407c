from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from src.domain.lead_mapping import ParsedLead
from src.observability import incr_metric, log_event


AUTO_CREATE_SETTING = "auto_create_opportunity_from_lead"
LEAD_STAGE_TYPE = "lead"


@dataclass(frozen=True)
class OpportunityOutcome:
    """Result of the optional opportunity step. At most one field is set."""
    opportunity_id: str | None = None
    skipped_reason: str | None = None  # "disabled" | "no_lead_stage"
    error: str | None = None

    @property
    def created(self) -> bool:
        return self.opportunity_id is not None


def opportunity_name(lead: ParsedLead, provider: str) -> str:
    customer_name = (
        lead.company_name
        or " ".join(part for part in (lead.first_name, lead.last_name) if part)
        or "New Lead"
    )
    return f"{customer_name} - {provider[:1].upper()}{provider[1:]} Lead"


def _auto_create_enabled(supabase_client: Any, organization_id: str) -> bool:
    result = (
        supabase_client.table("organizations")
        .select("settings")
        .eq("id", organization_id)
        .limit(1)
        .execute()
    )
    org = result.data[0] if result.data else None
    org_settings = (org or {}).get("settings") or {}
    # Opt-out: only an explicit false disables it.
    return org_settings.get(AUTO_CREATE_SETTING) is not False


def _lead_stage(supabase_client: Any, organization_id: str) -> dict[str, Any] | None:
    result = (
        supabase_client.table("pipeline_stages")
        .select("id, probability")
        .eq("organization_id", organization_id)
        .eq("stage_type", LEAD_STAGE_TYPE)
        .eq("is_active", True)
        .order("sort_order")
        .limit(1)
        .execute()
    )
    return result.data[0] if result.data else None


def create_opportunity_from_lead(
    supabase_client: Any,
    organization_id: str,
    customer_id: str,
    lead: ParsedLead,
    provider: str,
    *,
    request_id: str | None = None,
) -> OpportunityOutcome:
    try:
        if not _auto_create_enabled(supabase_client, organization_id):
            incr_metric("lead_webhook.opportunity", result="disabled")
            return OpportunityOutcome(skipped_reason="disabled")

        stage = _lead_stage(supabase_client, organization_id)
        if not stage:
            incr_metric("lead_webhook.opportunity", result="no_lead_stage")
            log_event(
                "lead_pipeline_stage_missing",
                level=logging.WARNING,
                request_id=request_id,
                organization_id=organization_id,
            )
            return OpportunityOutcome(skipped_reason="no_lead_stage")

        result = supabase_client.table("opportunities").insert(
            {
                "organization_id": organization_id,
                "customer_id": customer_id,
                "name": opportunity_name(lead, provider),
                "description": lead.notes or f"Lead from {provider}",
                "stage_id": stage["id"],
                "estimated_value": None,
                "weighted_value": None,
                "expected_close_date": None,
                "owner_id": None,
            }
        ).execute()
        opportunity_id = result.data[0]["id"]
    except Exception as exc:
        incr_metric("lead_webhook.opportunity", result="error")
        log_event(
            "lead_opportunity_creation_failed",
            level=logging.ERROR,
            request_id=request_id,
            organization_id=organization_id,
            customer_id=customer_id,
            error=str(exc),
        )
        return OpportunityOutcome(error=str(exc))

    incr_metric("lead_webhook.opportunity", result="created")
    return OpportunityOutcome(opportunity_id=opportunity_id)
