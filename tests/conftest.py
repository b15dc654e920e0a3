"""
Pytest configuration and shared fixtures for the Kite gateway tests.
"""
import pytest

from core.config.settings import Settings, ZerodhaSettings, GatewaySettings
from services.gateway.gateway import TradingGateway
from services.gateway.session import SessionState
from services.gateway.tools import ToolRegistry
from tests.mocks.fake_kite import FakeBrokerClient


@pytest.fixture
def test_settings():
    """Test settings configuration."""
    return Settings(
        _env_file=None,
        environment="testing",
        zerodha=ZerodhaSettings(
            api_key="test_key",
            api_secret="test_secret",
        ),
        gateway=GatewaySettings(order_tag="gateway-test"),
    )


@pytest.fixture
def fake_broker():
    return FakeBrokerClient()


@pytest.fixture
def session_state():
    return SessionState()


@pytest.fixture
def gateway(fake_broker, session_state, test_settings):
    """Gateway with no session yet."""
    return TradingGateway(fake_broker, session_state, test_settings)


@pytest.fixture
def active_gateway(gateway):
    """Gateway that has completed a session exchange."""
    envelope = gateway.exchange_session("request-token-abc")
    assert envelope.ok
    return gateway


@pytest.fixture
def tool_registry(gateway):
    return ToolRegistry(gateway)
