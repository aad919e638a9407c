from jose import jwt, JWTError
from src.config import settings


def decode_session_token(token: str) -> dict | None:
    """Decode a session JWT issued by the auth provider. Returns payload or None if invalid."""
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
        )
    except JWTError:
        return None
    if not payload.get("sub"):
        return None
    return payload
