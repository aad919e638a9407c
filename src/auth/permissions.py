from __future__ import annotations

from typing import Final

CANONICAL_ROLES: Final[set[str]] = {
    "platform_owner",
    "platform_admin",
    "tenant_owner",
    "admin",
    "estimator",
    "technician",
    "viewer",
}

LEAD_WEBHOOKS_READ: Final[str] = "lead_webhooks.read"
LEAD_WEBHOOKS_WRITE: Final[str] = "lead_webhooks.write"
LEAD_WEBHOOKS_LOGS_READ: Final[str] = "lead_webhooks.logs.read"

_MANAGE_BUNDLE: Final[frozenset[str]] = frozenset(
    {LEAD_WEBHOOKS_READ, LEAD_WEBHOOKS_WRITE, LEAD_WEBHOOKS_LOGS_READ}
)

ROLE_PERMISSION_BUNDLES: Final[dict[str, frozenset[str]]] = {
    "platform_owner": _MANAGE_BUNDLE,
    "platform_admin": _MANAGE_BUNDLE,
    "tenant_owner": _MANAGE_BUNDLE,
    "admin": _MANAGE_BUNDLE,
    "estimator": frozenset({LEAD_WEBHOOKS_READ, LEAD_WEBHOOKS_LOGS_READ}),
    "technician": frozenset(),
    "viewer": frozenset(),
}


def normalize_role(role: str) -> str:
    normalized = (role or "").strip().lower()
    if normalized not in CANONICAL_ROLES:
        raise ValueError(f"Unsupported role: {role}")
    return normalized


def permissions_for_role(role: str) -> set[str]:
    return set(ROLE_PERMISSION_BUNDLES[normalize_role(role)])


def role_has_permission(role: str, permission_key: str) -> bool:
    return permission_key in permissions_for_role(role)
