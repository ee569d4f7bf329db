"""
Explicit wiring of repositories, broker and engines
"""
from dataclasses import dataclass
from typing import Optional

from .auth import AuthServiceClient, SessionResolver
from .domain.repositories import Repositories
from .pubsub import PubSubBroker
from .storage import ObjectStorage
from .subscriptions import SubscriptionGate
from .application.interactions import InteractionService
from .application.messaging import MessagingService
from .application.notifications import NotificationService
from .application.relationships import RelationshipService
from .application.unreads import UnreadsService


@dataclass
class ServiceContainer:
    repos: Repositories
    pubsub: PubSubBroker
    unreads: UnreadsService
    notifications: NotificationService
    relationships: RelationshipService
    messaging: MessagingService
    interactions: InteractionService
    gate: SubscriptionGate
    sessions: SessionResolver
    storage: Optional[ObjectStorage] = None


def build_services(
    repos: Repositories,
    pubsub: PubSubBroker,
    push=None,
    storage: Optional[ObjectStorage] = None,
    auth_client: Optional[AuthServiceClient] = None,
) -> ServiceContainer:
    """Every engine shares the same repositories and broker instance"""
    unreads = UnreadsService(repos, pubsub)
    notifications = NotificationService(repos, pubsub, unreads, push=push)
    return ServiceContainer(
        repos=repos,
        pubsub=pubsub,
        unreads=unreads,
        notifications=notifications,
        relationships=RelationshipService(repos, pubsub, notifications),
        messaging=MessagingService(repos, pubsub, notifications, unreads),
        interactions=InteractionService(repos, pubsub),
        gate=SubscriptionGate(repos, pubsub),
        sessions=SessionResolver(repos.users, auth_client),
        storage=storage,
    )
