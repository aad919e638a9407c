from fastapi import Depends, Header, HTTPException, status
from src.auth.context import AuthContext
from src.auth.jwt import decode_session_token
from src.auth.permissions import CANONICAL_ROLES
from src.db import supabase


def _extract_bearer_token(authorization: str | None) -> str | None:
    """Extract token from 'Bearer <token>' header."""
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]


def _get_active_profile(user_id: str) -> dict | None:
    result = supabase.table("profiles").select(
        "id, organization_id, email, role, is_active"
    ).eq("id", user_id).eq("is_active", True).limit(1).execute()
    if not result.data:
        return None
    return result.data[0]


async def get_current_user(authorization: str | None = Header(None)) -> AuthContext:
    """Session auth for the settings UI. The profile supplies organization and role."""
    token = _extract_bearer_token(authorization)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization header",
        )

    payload = decode_session_token(token)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired session",
        )

    profile = _get_active_profile(payload["sub"])
    if not profile:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Profile not found or inactive",
        )

    if not profile.get("organization_id") or profile.get("role") not in CANONICAL_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No organization access",
        )

    return AuthContext(
        organization_id=profile["organization_id"],
        user_id=profile["id"],
        role=profile["role"],
        email=profile.get("email"),
    )


def require_permission(permission_key: str):
    async def _require(auth: AuthContext = Depends(get_current_user)) -> AuthContext:
        if permission_key not in auth.permissions:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission required: {permission_key}",
            )
        return auth

    return _require
