from dataclasses import dataclass
from src.auth.permissions import normalize_role, permissions_for_role


@dataclass
class AuthContext:
    """Identity of a signed-in profile, scoped to its organization."""
    organization_id: str
    user_id: str
    role: str
    email: str | None = None
    permissions: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        self.role = normalize_role(self.role)
        if self.permissions:
            self.permissions = tuple(sorted(set(self.permissions)))
            return
        self.permissions = tuple(sorted(permissions_for_role(self.role)))
