"""Authentication handlers for GraphQL requests.

Provides pluggable authentication via the Auth protocol. Hasura accepts
either an admin secret (optionally acting as a role) or a JWT bearer token.
"""

from typing import Dict, Protocol, runtime_checkable


@runtime_checkable
class Auth(Protocol):
    """Protocol for authentication handlers.

    Example:
        class ServiceAuth:
            def __init__(self, token: str, user_id: str):
                self.token = token
                self.user_id = user_id

            def get_headers(self) -> dict[str, str]:
                return {
                    "Authorization": f"Bearer {self.token}",
                    "x-hasura-user-id": self.user_id,
                }
    """

    def get_headers(self) -> Dict[str, str]:
        """Return headers to include in requests."""
        ...


class HasuraAdminSecretAuth:
    """Hasura admin secret authentication.

    Args:
        admin_secret: Value of HASURA_GRAPHQL_ADMIN_SECRET
        role: Optional role to act as (sent as x-hasura-role)

    Example:
        auth = HasuraAdminSecretAuth("my-secret")
        auth = HasuraAdminSecretAuth("my-secret", role="artist")
    """

    def __init__(self, admin_secret: str, role: str | None = None):
        self.admin_secret = admin_secret
        self.role = role

    def get_headers(self) -> Dict[str, str]:
        headers = {"x-hasura-admin-secret": self.admin_secret}
        if self.role:
            headers["x-hasura-role"] = self.role
        return headers


class ApiKeyAuth:
    """API key authentication via a custom header.

    Args:
        api_key: The API key value
        header_name: Header name (default: "x-api-key")
    """

    def __init__(self, api_key: str, header_name: str = "x-api-key"):
        self.api_key = api_key
        self.header_name = header_name

    def get_headers(self) -> Dict[str, str]:
        return {self.header_name: self.api_key}


class BearerAuth:
    """Bearer token authentication (Hasura JWT mode)."""

    def __init__(self, token: str):
        self.token = token

    def get_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


class HeaderAuth:
    """Custom headers authentication.

    Example:
        auth = HeaderAuth({
            "x-hasura-admin-secret": "secret",
            "x-hasura-user-id": "42",
        })
    """

    def __init__(self, headers: Dict[str, str]):
        self._headers = headers

    def get_headers(self) -> Dict[str, str]:
        return self._headers.copy()


class NoAuth:
    """No authentication (public endpoints such as the subgraph, or tests)."""

    def get_headers(self) -> Dict[str, str]:
        return {}
