"""Security filter policies layered onto metadata filters.

The policy runs after intent and user constraints are assembled, so its
constraints always win over anything the router extracted from the query.
"""

import logging
from typing import Any, Protocol

from hvac_search.errors import AuthorizationError
from hvac_search.models.auth import Principal, Role

logger = logging.getLogger(__name__)


class SecurityPolicy(Protocol):
    """Adds tenant and role constraints to a metadata filter."""

    name: str

    def apply(self, filter: dict[str, Any], principal: Principal | None) -> dict[str, Any]:
        ...


class NoopPolicy:
    """Leaves filters untouched; every record is visible (demo deployments)."""

    name = "noop"

    def apply(self, filter: dict[str, Any], principal: Principal | None) -> dict[str, Any]:
        return dict(filter)


class TenantScopedPolicy:
    """OpCo isolation, vendor-portal scoping, and role-hierarchy allow-lists.

    Admins see every OpCo. Everyone else is restricted to their own OpCo and
    to records whose ``role_required`` is at or below their role level;
    vendor-portal users are further restricted to their own vendor id.
    """

    name = "tenant_scoped"

    def apply(self, filter: dict[str, Any], principal: Principal | None) -> dict[str, Any]:
        if principal is None:
            raise AuthorizationError(
                "Security policy requires an authenticated principal",
                operation="security_filter",
            )

        scoped = dict(filter)
        if principal.is_admin:
            return scoped

        if not principal.opco_code:
            raise AuthorizationError("User has no OpCo assigned", operation="security_filter")

        scoped["opco_id"] = {"$eq": principal.opco_code}
        if principal.role is Role.VENDOR_PORTAL and principal.vendor_id:
            scoped["vendor_id"] = {"$eq": principal.vendor_id}
        scoped["role_required"] = {"$in": principal.allowed_roles()}

        logger.debug(
            f"Applied tenant scope for {principal.email}: "
            f"opco={principal.opco_code}, role={principal.role.value}"
        )
        return scoped


def get_security_policy(name: str) -> SecurityPolicy:
    """Return the policy registered under name (noop, tenant_scoped)."""
    policies: dict[str, type] = {
        NoopPolicy.name: NoopPolicy,
        TenantScopedPolicy.name: TenantScopedPolicy,
    }
    try:
        return policies[name]()
    except KeyError:
        raise ValueError(f"Unknown security policy '{name}'") from None
