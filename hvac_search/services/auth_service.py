"""Session authentication collaborator.

Session issuance and storage live elsewhere; the search API only needs a
principal (role, OpCo, vendor scope) for the security filter.
"""

import secrets
from typing import Protocol

from hvac_search.errors import AuthenticationError, AuthorizationError
from hvac_search.logging_config import get_logger
from hvac_search.models.auth import Principal, Role

logger = get_logger(__name__)


class Authenticator(Protocol):
    """Resolves a session token to a principal."""

    def authenticate(self, token: str | None) -> Principal:
        ...


class StaticSessionAuthenticator:
    """Demo authenticator: one configured session maps to one demo principal.

    When no session token is configured, any non-empty token is accepted
    (the demo auto-login behavior).
    """

    def __init__(
        self,
        principal: Principal,
        session_token: str | None = None,
    ):
        self.principal = principal
        self.session_token = session_token

    def authenticate(self, token: str | None) -> Principal:
        """Return the demo principal for a valid token.

        Raises:
            AuthenticationError: If the token is missing or does not match
        """
        if not token:
            raise AuthenticationError("Not authenticated", operation="authenticate")
        if self.session_token is not None and not secrets.compare_digest(
            token.encode(), self.session_token.encode()
        ):
            logger.warning("Rejected unknown session token")
            raise AuthenticationError("Invalid or expired session", operation="authenticate")
        return self.principal


def require_tenant_access(principal: Principal) -> Principal:
    """Reject non-admin principals that have no OpCo assigned.

    Raises:
        AuthorizationError: If the principal has no OpCo and is not an admin
    """
    if not principal.opco_code and principal.role is not Role.ADMIN:
        raise AuthorizationError("User has no OpCo assigned", operation="authorize")
    return principal


def demo_principal(email: str, role: str, opco_code: str | None) -> Principal:
    """Principal used by the demo authenticator."""
    return Principal(
        user_id="demo-user",
        email=email,
        role=Role(role),
        opco_code=opco_code,
    )
