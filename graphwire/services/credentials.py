"""
Credential providers.

Token acquisition lives outside this package; the executor only needs
something that hands back a bearer token for a scope.
"""

from abc import ABC, abstractmethod

from graphwire.services.errors import AuthenticationFailedError


class CredentialProvider(ABC):
    """Supplies bearer tokens. Raise AuthenticationFailedError on denial."""

    @abstractmethod
    async def get_token(self, scope: str) -> str: ...


class StaticCredentialProvider(CredentialProvider):
    """Returns a fixed token, e.g. one read from GRAPH_ACCESS_TOKEN."""

    def __init__(self, token: str):
        self._token = token

    async def get_token(self, scope: str) -> str:
        if not self._token:
            raise AuthenticationFailedError(
                "Authentication failed: no access token configured",
                http_status=401,
                path=scope,
            )
        return self._token
