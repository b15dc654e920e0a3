# Dependency injection container for the gateway
from dependency_injector import containers, providers

from core.config.settings import Settings
from services.gateway.broker import KiteBrokerClient
from services.gateway.gateway import TradingGateway
from services.gateway.session import SessionState
from services.gateway.tools import ToolRegistry


class AppContainer(containers.DeclarativeContainer):
    """Application dependency injection container"""

    # Configuration
    settings = providers.Singleton(Settings)

    # One session and one broker client per process
    session_state = providers.Singleton(SessionState)

    broker_client = providers.Singleton(
        KiteBrokerClient,
        settings=settings,
    )

    gateway = providers.Singleton(
        TradingGateway,
        broker=broker_client,
        session=session_state,
        settings=settings,
    )

    tool_registry = providers.Singleton(
        ToolRegistry,
        gateway=gateway,
    )
