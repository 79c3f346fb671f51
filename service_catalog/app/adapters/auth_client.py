"""
Auth service client.
"""

from typing import Any, Dict

from shared.errors import AuthenticationError, BackendError

from .base import BackendClient


class AuthClient(BackendClient):
    """Client for the upstream authentication service."""

    service_name = "auth"

    async def verify_token(self, token: str) -> Dict[str, Any]:
        """Verify a bearer token.

        Returns the service's verdict, ``{"valid": bool, "user_info": {...}}``.
        """
        try:
            result = await self._request("verify_token", "POST", "/auth/verify", json_body={"token": token})
        except BackendError as exc:
            self.logger.error("Auth service error", error=exc.message)
            raise AuthenticationError(
                "Auth service unavailable",
                details={"error": exc.message}
            ) from exc

        result = result or {}
        if not result.get("valid"):
            self.logger.warning("Token validation failed", error=result.get("error"))
        return result
