from decimal import Decimal

import pytest

from services.gateway.broker import BrokerOrder, BrokerPositions
from services.gateway.models import ORDER_REJECTED_SUGGESTION, ErrorKind, ResultStatus
from tests.mocks.fake_kite import position


def test_get_login_url(gateway, fake_broker):
    assert gateway.get_login_url() == fake_broker.login


def test_get_login_url_without_client_returns_none(gateway, fake_broker):
    fake_broker.initialized = False
    assert gateway.get_login_url() is None


def test_exchange_session_payload(gateway):
    envelope = gateway.exchange_session("request-token-abc")

    assert envelope.to_dict() == {
        "access_token": "access-123",
        "public_token": "public-456",
        "user_id": "AB1234",
        "message": "Session generated successfully",
        "status": "success",
    }


class TestPlaceOrder:

    def test_places_limit_order_with_defaults(self, active_gateway, fake_broker):
        envelope = active_gateway.place_order("infy", "buy", 5, 1500.5)

        assert envelope.status is ResultStatus.SUCCESS
        assert envelope.payload["order_id"] == fake_broker.order_id
        assert envelope.payload["message"] == "Order placed successfully"
        assert envelope.payload["details"] == {
            "trading_symbol": "INFY",
            "transaction_type": "BUY",
            "quantity": 5,
            "price": 1500.5,
            "product": "CNC",
            "order_type": "LIMIT",
            "validity": "DAY",
            "exchange": "NSE",
        }

        order = fake_broker.placed_orders[0]
        assert order.price == Decimal("1500.5")
        assert order.trigger_price == Decimal("0")
        assert order.tag == "gateway-test"
        assert order.variety == "regular"

    def test_explicit_product_is_forwarded(self, active_gateway, fake_broker):
        envelope = active_gateway.place_order("SBIN", "SELL", 1, 600.0, "MIS")

        assert envelope.ok
        assert fake_broker.placed_orders[0].product == "MIS"

    @pytest.mark.parametrize("quantity", [0, -1, -100])
    def test_non_positive_quantity_is_rejected_locally(self, active_gateway, fake_broker, quantity):
        envelope = active_gateway.place_order("INFY", "BUY", quantity, 1500.0)

        assert envelope.error_kind is ErrorKind.VALIDATION_ERROR
        assert envelope.error_code == "INVALID_ORDER"
        assert "quantity" in envelope.error_message
        assert fake_broker.calls["place_order"] == 0

    @pytest.mark.parametrize("kwargs", [
        {"trading_symbol": "", "transaction_type": "BUY", "quantity": 1, "price": 10.0},
        {"trading_symbol": "INFY", "transaction_type": "HOLD", "quantity": 1, "price": 10.0},
        {"trading_symbol": "INFY", "transaction_type": "BUY", "quantity": 1, "price": -0.05},
    ])
    def test_invalid_fields_are_rejected_locally(self, active_gateway, fake_broker, kwargs):
        envelope = active_gateway.place_order(**kwargs)

        assert envelope.error_kind is ErrorKind.VALIDATION_ERROR
        assert fake_broker.calls["place_order"] == 0

    def test_zero_price_is_allowed(self, active_gateway):
        assert active_gateway.place_order("INFY", "BUY", 1, 0.0).ok

    def test_rejected_order_suggests_checking_parameters(self, active_gateway, fake_broker):
        fake_broker.fail("place_order", ErrorKind.KITE_API_ERROR, "InputException", "Invalid price")

        envelope = active_gateway.place_order("INFY", "BUY", 1, 1500.0)

        assert envelope.suggestion == ORDER_REJECTED_SUGGESTION

    @pytest.mark.parametrize("kind,code,expected_message", [
        (ErrorKind.KITE_API_ERROR, "InputException", "Insufficient funds"),
        (ErrorKind.NETWORK_ERROR, "IO_EXCEPTION", "Network error occurred while placing order"),
        (ErrorKind.RESPONSE_ERROR, "JSON_EXCEPTION", "Error processing API response"),
    ])
    def test_broker_failures_map_to_envelope(self, active_gateway, fake_broker, kind, code, expected_message):
        fake_broker.fail("place_order", kind, code, "Insufficient funds")

        out = active_gateway.place_order("INFY", "BUY", 1, 1500.0).to_dict()

        assert out["status"] == "failed"
        assert out["error_type"] == kind.value
        assert out["error_code"] == code
        assert out["error"] == expected_message
        assert out["suggestion"]


def test_get_margins(active_gateway):
    assert active_gateway.get_margins("equity").to_dict() == {
        "available_cash": 50000.0,
        "utilised_debits": 1250.5,
        "status": "success",
    }


def test_get_margins_failure_carries_message(active_gateway, fake_broker):
    fake_broker.fail("get_margins", ErrorKind.KITE_API_ERROR, "PermissionException", "Insufficient permission")

    envelope = active_gateway.get_margins()

    assert envelope.error_message == "Insufficient permission"
    assert envelope.suggestion != ORDER_REJECTED_SUGGESTION


def test_get_holdings(active_gateway):
    out = active_gateway.get_holdings().to_dict()

    assert out["status"] == "success"
    assert out["total_holdings"] == 2
    assert out["holdings"][0] == {
        "trading_symbol": "INFY",
        "day_change": 12.5,
        "day_change_percentage": 0.8,
        "quantity": 10,
        "average_price": 1500.0,
    }


def test_get_holdings_is_idempotent(active_gateway):
    first = active_gateway.get_holdings().to_dict()
    second = active_gateway.get_holdings().to_dict()

    assert first == second


def test_get_positions_filters_closed_and_sums_net(active_gateway, fake_broker):
    fake_broker.positions = BrokerPositions(
        net=[position("A", 0, pnl=100.0, unrealised=50.0), position("B", 10, pnl=5.0, unrealised=2.0)],
        day=[position("A", 0), position("C", -3, pnl=-1.5)],
    )

    out = active_gateway.get_positions().to_dict()

    assert [p["trading_symbol"] for p in out["net_positions"]] == ["B"]
    assert [p["trading_symbol"] for p in out["day_positions"]] == ["C"]
    assert out["total_positions"] == 1
    assert out["total_pnl"] == 5.0
    assert out["total_unrealised_pnl"] == 2.0


def test_get_positions_unexpected_error(active_gateway, fake_broker):
    fake_broker.fail("get_positions", ErrorKind.UNEXPECTED_ERROR, "RuntimeError", "kaput")

    envelope = active_gateway.get_positions()

    assert envelope.error_kind is ErrorKind.UNEXPECTED_ERROR
    assert envelope.error_message == "Unexpected error: kaput"


def test_get_risk_summary(active_gateway):
    out = active_gateway.get_risk_summary().to_dict()

    assert out["available_cash"] == 50000.0
    assert out["utilised_debits"] == 1250.5
    assert out["total_portfolio_value"] == 10 * 1500.0 + 2 * 3500.0
    assert out["sector_exposure"] == {}


def test_get_risk_summary_uses_configured_sector_map(fake_broker, session_state, test_settings):
    from services.gateway.gateway import TradingGateway

    test_settings.gateway.sector_map = {"INFY": "IT"}
    gw = TradingGateway(fake_broker, session_state, test_settings)
    gw.exchange_session("request-token-abc")

    out = gw.get_risk_summary().to_dict()

    assert out["sector_exposure"] == {"IT": 15000.0, "UNCLASSIFIED": 7000.0}


def test_get_risk_summary_stops_at_first_failure(active_gateway, fake_broker):
    fake_broker.fail("get_margins", ErrorKind.NETWORK_ERROR, "IO_EXCEPTION", "down")

    envelope = active_gateway.get_risk_summary()

    assert envelope.error_kind is ErrorKind.NETWORK_ERROR
    assert fake_broker.calls["get_holdings"] == 0


def test_get_order_analysis(active_gateway, fake_broker):
    fake_broker.orders = [
        BrokerOrder(symbol="X", quantity=2, price=10.0),
        BrokerOrder(symbol="X", quantity=3, price=5.0),
    ]

    out = active_gateway.get_order_analysis().to_dict()

    assert out["total_orders"] == 2
    assert out["symbol_order_count"] == {"X": 2}
    assert out["symbol_total_value"] == {"X": 35.0}
