"""Authenticated principal consumed by the security filter seam."""

from enum import Enum

from pydantic import BaseModel


class Role(str, Enum):
    """User roles, ordered by ``level``."""

    ADMIN = "admin"
    FINANCE_MANAGER = "finance_manager"
    EMPLOYEE = "employee"
    VENDOR_PORTAL = "vendor_portal"

    @property
    def level(self) -> int:
        return ROLE_HIERARCHY[self]


ROLE_HIERARCHY: dict[Role, int] = {
    Role.ADMIN: 4,
    Role.FINANCE_MANAGER: 3,
    Role.EMPLOYEE: 2,
    Role.VENDOR_PORTAL: 1,
}


class Principal(BaseModel):
    """User record returned by the auth collaborator."""

    user_id: str
    email: str
    role: Role
    opco_code: str | None = None
    vendor_id: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    def allowed_roles(self) -> list[str]:
        """Roles whose records this principal may read (own level and below)."""
        return [
            role.value
            for role, level in ROLE_HIERARCHY.items()
            if level <= self.role.level
        ]
