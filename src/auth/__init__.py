from src.auth.context import AuthContext
from src.auth.dependencies import get_current_user, require_permission
from src.auth.permissions import (
    LEAD_WEBHOOKS_LOGS_READ,
    LEAD_WEBHOOKS_READ,
    LEAD_WEBHOOKS_WRITE,
)

__all__ = [
    "AuthContext",
    "get_current_user",
    "require_permission",
    "LEAD_WEBHOOKS_READ",
    "LEAD_WEBHOOKS_WRITE",
    "LEAD_WEBHOOKS_LOGS_READ",
]
