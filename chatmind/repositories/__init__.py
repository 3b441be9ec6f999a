from chatmind.repositories.config_repository import ConfigRepository
from chatmind.repositories.interfaces import (
    ConfigRepositoryProtocol,
    StorageGatewayProtocol,
    SubscriptionHandle,
)
from chatmind.repositories.memory_gateway import InMemoryStorageGateway

__all__ = [
    "ConfigRepository",
    "ConfigRepositoryProtocol",
    "InMemoryStorageGateway",
    "StorageGatewayProtocol",
    "SubscriptionHandle",
]
