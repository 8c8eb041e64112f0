"""Connection settings for the Hasura endpoint."""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .core.auth import Auth, HasuraAdminSecretAuth, NoAuth

ENDPOINT_ENV = "HASURA_GRAPHQL_ENDPOINT"
ADMIN_SECRET_ENV = "HASURA_GRAPHQL_ADMIN_SECRET"
TIMEOUT_ENV = "HASURA_GRAPHQL_TIMEOUT"

DEFAULT_TIMEOUT = 30.0


@dataclass
class Settings:
    endpoint: Optional[str] = None
    admin_secret: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Read settings from environment variables (``os.environ`` by default)."""
        env = os.environ if environ is None else environ
        timeout = env.get(TIMEOUT_ENV)
        return cls(
            endpoint=env.get(ENDPOINT_ENV) or None,
            admin_secret=env.get(ADMIN_SECRET_ENV) or None,
            timeout=float(timeout) if timeout else DEFAULT_TIMEOUT,
        )

    def auth(self) -> Auth:
        if self.admin_secret:
            return HasuraAdminSecretAuth(self.admin_secret)
        return NoAuth()
