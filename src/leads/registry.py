from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone
from typing import Any

from src.domain.lead_mapping import PROVIDER_LABELS, merge_field_mapping
from src.models.lead_webhooks import LeadWebhookEndpointCreate, LeadWebhookEndpointUpdate
from src.observability import log_event


ENDPOINTS_TABLE = "lead_webhook_endpoints"
ENDPOINT_COLUMNS = (
    "id, organization_id, name, slug, provider, api_key, secret, field_mapping, "
    "is_active, leads_received, last_lead_at, created_at, updated_at"
)


class EndpointSlugConflict(Exception):
    """Raised when the slug is already taken by another endpoint."""

    def __init__(self, slug: str):
        super().__init__(f"Slug already in use: {slug}")
        self.slug = slug


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def is_unique_violation(exc: Exception) -> bool:
    # PostgREST surfaces Postgres error codes on APIError.code; fall back to the message.
    if getattr(exc, "code", None) == "23505":
        return True
    message = str(exc).lower()
    return "duplicate" in message or "unique" in message


def generate_slug() -> str:
    """12 random bytes, base64url without padding."""
    return secrets.token_urlsafe(12)


def provider_options() -> list[dict[str, str]]:
    return [{"value": value, "label": label} for value, label in PROVIDER_LABELS.items()]


def list_endpoints(supabase_client: Any, organization_id: str) -> list[dict[str, Any]]:
    result = (
        supabase_client.table(ENDPOINTS_TABLE)
        .select(ENDPOINT_COLUMNS)
        .eq("organization_id", organization_id)
        .order("created_at", desc=True)
        .execute()
    )
    return result.data or []


def get_endpoint(supabase_client: Any, organization_id: str, endpoint_id: str) -> dict[str, Any] | None:
    result = (
        supabase_client.table(ENDPOINTS_TABLE)
        .select(ENDPOINT_COLUMNS)
        .eq("id", endpoint_id)
        .eq("organization_id", organization_id)
        .limit(1)
        .execute()
    )
    return result.data[0] if result.data else None


def get_by_slug(supabase_client: Any, slug: str) -> dict[str, Any] | None:
    """Active endpoint for an inbound slug. Inactive and unknown slugs both return None."""
    result = (
        supabase_client.table(ENDPOINTS_TABLE)
        .select(ENDPOINT_COLUMNS)
        .eq("slug", slug)
        .eq("is_active", True)
        .limit(1)
        .execute()
    )
    return result.data[0] if result.data else None


def create_endpoint(
    supabase_client: Any,
    organization_id: str,
    data: LeadWebhookEndpointCreate,
) -> dict[str, Any]:
    slug = data.slug or generate_slug()
    insert_data = {
        "organization_id": organization_id,
        "name": data.name,
        "slug": slug,
        "provider": data.provider,
        "api_key": data.api_key,
        "secret": data.secret,
        "field_mapping": merge_field_mapping(data.provider, data.field_mapping),
        "is_active": True,
        "leads_received": 0,
    }
    try:
        result = supabase_client.table(ENDPOINTS_TABLE).insert(insert_data).execute()
    except Exception as exc:
        if is_unique_violation(exc):
            raise EndpointSlugConflict(slug) from exc
        raise

    endpoint = result.data[0]
    log_event(
        "lead_webhook_endpoint_created",
        organization_id=organization_id,
        endpoint_id=endpoint.get("id"),
        provider=data.provider,
    )
    return endpoint


def update_endpoint(
    supabase_client: Any,
    organization_id: str,
    endpoint_id: str,
    data: LeadWebhookEndpointUpdate,
) -> dict[str, Any] | None:
    update_data = data.model_dump(exclude_unset=True)
    update_data["updated_at"] = _now_iso()

    result = (
        supabase_client.table(ENDPOINTS_TABLE)
        .update(update_data)
        .eq("id", endpoint_id)
        .eq("organization_id", organization_id)
        .execute()
    )
    if not result.data:
        return None
    log_event(
        "lead_webhook_endpoint_updated",
        organization_id=organization_id,
        endpoint_id=endpoint_id,
        fields=sorted(k for k in update_data if k != "updated_at"),
    )
    return result.data[0]


def delete_endpoint(supabase_client: Any, organization_id: str, endpoint_id: str) -> bool:
    result = (
        supabase_client.table(ENDPOINTS_TABLE)
        .delete()
        .eq("id", endpoint_id)
        .eq("organization_id", organization_id)
        .execute()
    )
    deleted = bool(result.data)
    if deleted:
        log_event("lead_webhook_endpoint_deleted", organization_id=organization_id, endpoint_id=endpoint_id)
    return deleted


def record_lead_received(supabase_client: Any, endpoint: dict[str, Any]) -> None:
    """Best-effort stats bump after a lead is created."""
    try:
        supabase_client.table(ENDPOINTS_TABLE).update(
            {
                "leads_received": (endpoint.get("leads_received") or 0) + 1,
                "last_lead_at": _now_iso(),
            }
        ).eq("id", endpoint["id"]).execute()
    except Exception as exc:
        log_event(
            "lead_webhook_stats_update_failed",
            level=logging.WARNING,
            endpoint_id=endpoint.get("id"),
            error=str(exc),
        )
