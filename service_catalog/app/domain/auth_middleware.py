"""
Authentication dependency for the Catalog Gateway.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from shared.errors import AuthenticationError, AuthorizationError
from shared.logging import get_logger, set_tenant_context

from ..adapters import AuthClient
from ..versioning import FeatureFlags


# Path alias for "the authenticated account"
MY_ACCOUNT = "my"


@dataclass(frozen=True)
class AuthContext:
    """Who is calling and what they declared.

    ``version`` is the raw version range the client asked for; it is
    negotiated later, once the route is known.
    """

    tenant_id: str
    login: str
    version: Optional[str]
    features: FeatureFlags


def requested_version(request: Request) -> Optional[str]:
    """Declared version range, ``Accept-Version`` winning over the older
    ``X-Api-Version``."""
    return request.headers.get("accept-version") or request.headers.get("x-api-version")


class AuthMiddleware:
    """Authenticates the caller and binds the tenant to the request.

    Used as a FastAPI dependency; stores the :class:`AuthContext` on
    ``request.state.auth``.
    """

    def __init__(self, auth_client: AuthClient, flags: FeatureFlags):
        self.auth_client = auth_client
        self.flags = flags
        self.logger = get_logger("gateway.auth_middleware")

    async def __call__(self, request: Request) -> AuthContext:
        return await self.authenticate_request(request)

    async def authenticate_request(self, request: Request) -> AuthContext:
        auth_header = request.headers.get("Authorization")
        if not auth_header:
            raise AuthenticationError("Authorization header required")

        if not auth_header.startswith("Bearer "):
            raise AuthenticationError("Invalid authorization header format")

        token = auth_header[7:]
        auth_result = await self.auth_client.verify_token(token)
        if not auth_result.get("valid"):
            raise AuthenticationError("Invalid token")

        user_info = auth_result.get("user_info") or {}
        tenant_id = user_info.get("tenant_id")
        login = user_info.get("login")
        if not tenant_id or not login:
            raise AuthenticationError("Token carries no account")

        account = request.path_params.get("account")
        if account and account not in (MY_ACCOUNT, login):
            self.logger.warning("Account mismatch", login=login, account=account)
            raise AuthorizationError(f"{login} is not allowed to access {account}")

        context = AuthContext(
            tenant_id=tenant_id,
            login=login,
            version=requested_version(request),
            features=self.flags,
        )
        set_tenant_context(tenant_id, login)
        request.state.auth = context

        self.logger.info("Request authenticated", tenant_id=tenant_id, login=login)
        return context
