"""
Session resolution against the Auth Service
"""
import httpx
from dataclasses import dataclass
from typing import Optional
import logging

from .config import settings
from .errors import ServiceUnavailableError, UnauthenticatedError
from .domain.models import User
from .domain.repositories import IUserRepository

logger = logging.getLogger(__name__)


@dataclass
class SessionContext:
    """Per-request (or per-socket) caller identity"""
    user: Optional[User] = None
    authenticated: bool = False

    @classmethod
    def anonymous(cls) -> "SessionContext":
        return cls()


def require_auth(context: Optional[SessionContext]) -> User:
    """Return the session user or raise UNAUTHENTICATED"""
    if context is None or not context.authenticated or context.user is None:
        raise UnauthenticatedError("User is not authenticated")
    return context.user


class AuthServiceClient:
    """Verifies bearer tokens with the Auth Service"""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url or settings.AUTH_SERVICE_URL
        self.timeout = timeout or settings.AUTH_TIMEOUT_SECONDS
        self.transport = transport

    async def verify_token(self, token: str) -> Optional[dict]:
        """
        Verify JWT token with Auth Service

        Args:
            token: JWT access token

        Returns:
            User data if token is valid, None otherwise
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(
                    f"{self.base_url}/api/v1/auth/me",
                    headers={"Authorization": f"Bearer {token}"},
                )

                if response.status_code == 200:
                    return response.json()
                logger.warning(
                    f"Token verification failed: {response.status_code} - {response.text}"
                )
                return None

        except httpx.TimeoutException:
            logger.error("Auth service timeout during token verification")
            raise ServiceUnavailableError(
                "Authentication service is temporarily unavailable"
            )
        except httpx.ConnectError:
            logger.error("Failed to connect to auth service")
            raise ServiceUnavailableError("Authentication service is unavailable")


class SessionResolver:
    """Turns a bearer token into a SessionContext backed by the identity store"""

    def __init__(self, users: IUserRepository, client: Optional[AuthServiceClient] = None):
        self.users = users
        self.client = client or AuthServiceClient()

    async def resolve(self, token: Optional[str]) -> SessionContext:
        if not token:
            return SessionContext.anonymous()

        user_data = await self.client.verify_token(token)
        if not user_data or user_data.get("id") is None:
            return SessionContext.anonymous()

        if user_data.get("is_active") is False:
            logger.warning(f"Inactive user {user_data.get('id')} rejected")
            return SessionContext.anonymous()

        user = await self.users.find_by_id(str(user_data["id"]))
        if user is None:
            logger.warning(f"Verified user {user_data['id']} missing from identity store")
            return SessionContext.anonymous()
        return SessionContext(user=user, authenticated=True)
