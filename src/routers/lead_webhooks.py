from fastapi import APIRouter, Depends, HTTPException, Query, status
from src.auth import (
    LEAD_WEBHOOKS_LOGS_READ,
    LEAD_WEBHOOKS_READ,
    LEAD_WEBHOOKS_WRITE,
    AuthContext,
    get_current_user,
    require_permission,
)
from src.db import supabase
from src.leads import audit, registry
from src.models.lead_webhooks import (
    LeadLogStatus,
    LeadProviderOption,
    LeadWebhookEndpointCreate,
    LeadWebhookEndpointResponse,
    LeadWebhookEndpointUpdate,
    LeadWebhookLogItem,
)

router = APIRouter(prefix="/api/lead-webhooks", tags=["lead-webhooks"])


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lead webhook endpoint not found")


@router.get("/providers", response_model=list[LeadProviderOption])
async def list_providers(_auth: AuthContext = Depends(get_current_user)):
    """Lead sources an endpoint can be configured for."""
    return registry.provider_options()


@router.get("/", response_model=list[LeadWebhookEndpointResponse])
async def list_lead_webhooks(auth: AuthContext = Depends(require_permission(LEAD_WEBHOOKS_READ))):
    """List the organization's lead webhook endpoints, newest first."""
    return registry.list_endpoints(supabase, auth.organization_id)


@router.post("/", response_model=LeadWebhookEndpointResponse, status_code=status.HTTP_201_CREATED)
async def create_lead_webhook(
    data: LeadWebhookEndpointCreate,
    auth: AuthContext = Depends(require_permission(LEAD_WEBHOOKS_WRITE)),
):
    """Create an endpoint. The provider's default field mapping is merged with any overrides."""
    try:
        return registry.create_endpoint(supabase, auth.organization_id, data)
    except registry.EndpointSlugConflict as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "type": "slug_conflict",
                "slug": exc.slug,
                "retryable": True,
                "message": str(exc),
            },
        ) from exc


@router.get("/{endpoint_id}", response_model=LeadWebhookEndpointResponse)
async def get_lead_webhook(
    endpoint_id: str,
    auth: AuthContext = Depends(require_permission(LEAD_WEBHOOKS_READ)),
):
    endpoint = registry.get_endpoint(supabase, auth.organization_id, endpoint_id)
    if not endpoint:
        raise _not_found()
    return endpoint


@router.patch("/{endpoint_id}", response_model=LeadWebhookEndpointResponse)
async def update_lead_webhook(
    endpoint_id: str,
    data: LeadWebhookEndpointUpdate,
    auth: AuthContext = Depends(require_permission(LEAD_WEBHOOKS_WRITE)),
):
    """Partial update. A supplied field_mapping replaces the stored one."""
    if not data.model_dump(exclude_unset=True):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")

    endpoint = registry.update_endpoint(supabase, auth.organization_id, endpoint_id, data)
    if not endpoint:
        raise _not_found()
    return endpoint


@router.delete("/{endpoint_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_lead_webhook(
    endpoint_id: str,
    auth: AuthContext = Depends(require_permission(LEAD_WEBHOOKS_WRITE)),
):
    if not registry.delete_endpoint(supabase, auth.organization_id, endpoint_id):
        raise _not_found()
    return None


@router.get("/{endpoint_id}/logs", response_model=list[LeadWebhookLogItem])
async def list_lead_webhook_logs(
    endpoint_id: str,
    status_filter: LeadLogStatus | None = Query(default=None, alias="status"),
    limit: int = 50,
    offset: int = 0,
    auth: AuthContext = Depends(require_permission(LEAD_WEBHOOKS_LOGS_READ)),
):
    """Inbound call history for one endpoint, newest first."""
    if not registry.get_endpoint(supabase, auth.organization_id, endpoint_id):
        raise _not_found()
    return audit.list_lead_logs(
        supabase,
        auth.organization_id,
        endpoint_id,
        status=status_filter,
        limit=limit,
        offset=offset,
    )
