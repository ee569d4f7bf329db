"""
FastAPI dependencies
"""
from fastapi import Depends, Request
from fastapi.responses import JSONResponse
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional

from ..auth import SessionContext, require_auth
from ..config import settings
from ..container import ServiceContainer
from ..domain.models import User
from ..schemas import ServiceResult
from ..application.interactions import InteractionService
from ..application.messaging import MessagingService
from ..application.notifications import NotificationService
from ..application.relationships import RelationshipService
from ..application.unreads import UnreadsService


# Security scheme
security = HTTPBearer(auto_error=False)


def get_services(request: Request) -> ServiceContainer:
    """Container built during application startup"""
    return request.app.state.services


async def get_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    services: ServiceContainer = Depends(get_services),
) -> SessionContext:
    token = credentials.credentials if credentials else None
    return await services.sessions.resolve(token)


async def get_current_user(session: SessionContext = Depends(get_session)) -> User:
    """
    Get current authenticated user

    Raises:
        UnauthenticatedError: handled by the app-level exception handler
    """
    return require_auth(session)


def get_relationship_service(services: ServiceContainer = Depends(get_services)) -> RelationshipService:
    return services.relationships


def get_messaging_service(services: ServiceContainer = Depends(get_services)) -> MessagingService:
    return services.messaging


def get_interaction_service(services: ServiceContainer = Depends(get_services)) -> InteractionService:
    return services.interactions


def get_notification_service(services: ServiceContainer = Depends(get_services)) -> NotificationService:
    return services.notifications


def get_unreads_service(services: ServiceContainer = Depends(get_services)) -> UnreadsService:
    return services.unreads


def page_size(limit: Optional[int]) -> int:
    """Clamp a requested page size into [1, MAX_PAGE_SIZE]"""
    if not limit or limit < 1:
        return settings.DEFAULT_PAGE_SIZE
    return min(limit, settings.MAX_PAGE_SIZE)


def to_response(result: ServiceResult) -> JSONResponse:
    """Serialize a ServiceResult with its own status code"""
    return JSONResponse(
        status_code=result.status_code,
        content=result.model_dump(by_alias=True, mode="json"),
    )
