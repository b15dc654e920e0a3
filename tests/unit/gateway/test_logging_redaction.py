from core.logging import DEFAULT_REDACT_KEYS, bind_broker_context, get_trading_logger_safe, make_redactor
from core.logging.channels import LogChannel, get_channel_for_component


def test_redacts_tokens_recursively():
    redact = make_redactor(DEFAULT_REDACT_KEYS)

    event = redact(None, "info", {
        "event": "Session generated",
        "access_token": "abc",
        "response": {"data": [{"Request_Token": "xyz", "user_id": "AB1234"}]},
    })

    assert event["access_token"] == "[REDACTED]"
    assert event["response"]["data"][0]["Request_Token"] == "[REDACTED]"
    assert event["response"]["data"][0]["user_id"] == "AB1234"
    assert event["event"] == "Session generated"


def test_custom_keys_only():
    redact = make_redactor(["order_id"])

    event = redact(None, "info", {"order_id": "1", "access_token": "abc"})

    assert event == {"order_id": "[REDACTED]", "access_token": "abc"}


def test_component_channels():
    assert get_channel_for_component("gateway") is LogChannel.TRADING
    assert get_channel_for_component("session") is LogChannel.AUDIT
    assert get_channel_for_component("something_else") is LogChannel.APPLICATION


def test_bind_broker_context_returns_bound_logger():
    logger = bind_broker_context(get_trading_logger_safe("test"), "zerodha", user_id="AB1234")

    logger.info("bound logger smoke message")
