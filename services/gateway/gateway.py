"""Session-gated command dispatch to the brokerage."""

import threading
from functools import wraps
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from core.config.settings import GatewaySettings, Settings
from core.logging import get_trading_logger_safe
from .aggregation import (
    analyze_orders,
    portfolio_value,
    sector_exposure,
    summarize_positions,
    to_holding_entry,
)
from .broker import BrokerClient, BrokerFailure
from .models import (
    Command,
    ORDER_REJECTED_SUGGESTION,
    ErrorKind,
    HoldingsResult,
    LogoutResult,
    MarginsResult,
    OrderRequest,
    OrderResult,
    ResultEnvelope,
    RiskSummaryResult,
    SessionResult,
)
from .session import SessionState

EXCHANGE_RETRY_SUGGESTION = (
    "Please generate a fresh request_token via get_login_url and call generate_session again."
)


def requires_session(command: Command):
    """Short-circuit a command with an authentication failure when no session is active."""
    def decorator(func):
        @wraps(func)
        def wrapper(self: "TradingGateway", *args, **kwargs) -> ResultEnvelope:
            # Advisory: the expiry hook may still fire between this check and the broker call
            if not self.session.is_active:
                self.logger.warning("Command rejected, session not active", command=command.value)
                return ResultEnvelope.session_required()
            return func(self, *args, **kwargs)
        return wrapper
    return decorator


def describe_validation_error(error: PydanticValidationError) -> str:
    parts = []
    for err in error.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}" if loc else err.get("msg", ""))
    return "; ".join(parts)


class TradingGateway:
    """
    Forwards commands to a BrokerClient behind a session gate and returns
    every outcome as a ResultEnvelope. Broker failures never propagate.
    """

    def __init__(self, broker: BrokerClient, session: Optional[SessionState] = None,
                 settings: Optional[Settings] = None):
        self.broker = broker
        self.session = session or SessionState()
        self.config: GatewaySettings = settings.gateway if settings else GatewaySettings()
        self.logger = get_trading_logger_safe("trading_gateway")
        # Set on the thread running a request token exchange
        self._exchange_guard = threading.local()
        self.broker.on_session_expired(self._handle_session_expired)

    def _handle_session_expired(self) -> None:
        """Called by the broker SDK, possibly from another thread.

        A rejected request token also trips the SDK hook; that says nothing
        about the access token already in use, so it is ignored.
        """
        if getattr(self._exchange_guard, "active", False):
            self.logger.info("Ignoring session expiry signal from request token exchange")
            return
        self.logger.warning("Kite session expired!")
        self.session.expire(reason="broker_session_expired")

    def _failure(self, failure: BrokerFailure, action: str,
                 suggestion: Optional[str] = None) -> ResultEnvelope:
        if failure.kind is ErrorKind.NETWORK_ERROR:
            message = f"Network error occurred while {action}"
        elif failure.kind is ErrorKind.RESPONSE_ERROR:
            message = "Error processing API response"
        elif failure.kind is ErrorKind.UNEXPECTED_ERROR:
            message = f"Unexpected error: {failure.message}"
        else:
            message = failure.message
        return ResultEnvelope.failure(failure.kind, message, code=failure.code, suggestion=suggestion)

    # --- Session commands ------------------------------------------------

    def get_login_url(self) -> Optional[str]:
        """Login URL for the Kite authorization flow, or None if the client is unusable."""
        url = self.broker.login_url()
        if url:
            self.logger.info("Generated login URL")
        return url

    def exchange_session(self, request_token: str) -> ResultEnvelope:
        if not request_token or not request_token.strip():
            return ResultEnvelope.failure(
                ErrorKind.VALIDATION_ERROR, "request_token is required", code="MISSING_REQUEST_TOKEN"
            )

        self._exchange_guard.active = True
        try:
            outcome = self.broker.exchange_session(request_token.strip())
        finally:
            self._exchange_guard.active = False
        if not outcome.ok:
            failure = outcome.failure
            if failure.kind is ErrorKind.NETWORK_ERROR:
                return self._failure(failure, "generating session")
            code = failure.code if failure.code == "CLIENT_NOT_INITIALIZED" else "SESSION_EXCHANGE_FAILED"
            return ResultEnvelope.failure(
                ErrorKind.AUTHENTICATION_ERROR,
                failure.message,
                code=code,
                suggestion=EXCHANGE_RETRY_SUGGESTION,
            )

        broker_session = outcome.value
        self.broker.set_access_token(broker_session.access_token)
        self.session.activate(
            broker_session.access_token,
            user_id=broker_session.user_id,
            public_token=broker_session.public_token,
        )
        return ResultEnvelope.success(SessionResult(
            access_token=broker_session.access_token,
            public_token=broker_session.public_token,
            user_id=broker_session.user_id,
        ))

    @requires_session(Command.LOGOUT)
    def logout(self) -> ResultEnvelope:
        access_token = self.session.access_token
        user_id = self.session.user_id
        outcome = self.broker.invalidate_session(access_token)
        # Local session goes regardless of what the broker says
        self.session.logout()
        if not outcome.ok:
            self.logger.warning("Remote session invalidation failed",
                                error_code=outcome.failure.code, error=outcome.failure.message)
            return ResultEnvelope.success(LogoutResult(
                user_id=user_id,
                message=f"Logged out locally; remote invalidation failed: {outcome.failure.message}",
            ))
        return ResultEnvelope.success(LogoutResult(user_id=user_id))

    # --- Trading commands ------------------------------------------------

    @requires_session(Command.PLACE_ORDER)
    def place_order(self, trading_symbol: str, transaction_type: str, quantity: int,
                    price: float, product: Optional[str] = None) -> ResultEnvelope:
        try:
            order = OrderRequest(
                symbol=trading_symbol,
                side=transaction_type,
                quantity=quantity,
                price=price,
                product=product or self.config.default_product,
                order_type=self.config.default_order_type,
                exchange=self.config.default_exchange,
                validity=self.config.default_validity,
                variety=self.config.default_variety,
                tag=self.config.order_tag,
            )
        except PydanticValidationError as e:
            message = describe_validation_error(e)
            self.logger.warning("Order rejected before submission", error=message)
            return ResultEnvelope.failure(ErrorKind.VALIDATION_ERROR, message, code="INVALID_ORDER")

        outcome = self.broker.place_order(order)
        if not outcome.ok:
            rejected = outcome.failure.kind is ErrorKind.KITE_API_ERROR
            return self._failure(outcome.failure, "placing order",
                                 ORDER_REJECTED_SUGGESTION if rejected else None)

        self.logger.info("Order placed", order_id=outcome.value, trading_symbol=order.symbol,
                         transaction_type=order.side.value, quantity=order.quantity)
        return ResultEnvelope.success(OrderResult(order_id=outcome.value, details=order.details()))

    @requires_session(Command.GET_MARGINS)
    def get_margins(self, segment: Optional[str] = None) -> ResultEnvelope:
        outcome = self.broker.get_margins(segment or self.config.default_margin_segment)
        if not outcome.ok:
            return self._failure(outcome.failure, "getting margins")
        margins = outcome.value
        return ResultEnvelope.success(MarginsResult(
            available_cash=margins.available_cash,
            utilised_debits=margins.utilised_debits,
        ))

    @requires_session(Command.GET_HOLDINGS)
    def get_holdings(self) -> ResultEnvelope:
        outcome = self.broker.get_holdings()
        if not outcome.ok:
            return self._failure(outcome.failure, "getting holdings")
        holdings = [to_holding_entry(h) for h in outcome.value]
        return ResultEnvelope.success(HoldingsResult(total_holdings=len(holdings), holdings=holdings))

    @requires_session(Command.GET_POSITIONS)
    def get_positions(self) -> ResultEnvelope:
        outcome = self.broker.get_positions()
        if not outcome.ok:
            return self._failure(outcome.failure, "getting positions")
        result = summarize_positions(outcome.value.net, outcome.value.day)
        self.logger.info("Retrieved positions", net_positions=result.total_positions,
                         day_positions=len(result.day_positions))
        return ResultEnvelope.success(result)

    @requires_session(Command.GET_RISK_SUMMARY)
    def get_risk_summary(self) -> ResultEnvelope:
        margins = self.broker.get_margins(self.config.risk_margin_segment)
        if not margins.ok:
            return self._failure(margins.failure, "getting risk analysis")
        holdings = self.broker.get_holdings()
        if not holdings.ok:
            return self._failure(holdings.failure, "getting risk analysis")

        return ResultEnvelope.success(RiskSummaryResult(
            available_cash=margins.value.available_cash,
            utilised_debits=margins.value.utilised_debits,
            total_portfolio_value=portfolio_value(holdings.value),
            sector_exposure=sector_exposure(holdings.value, self.config.sector_map),
        ))

    @requires_session(Command.GET_ORDER_ANALYSIS)
    def get_order_analysis(self) -> ResultEnvelope:
        outcome = self.broker.get_orders()
        if not outcome.ok:
            return self._failure(outcome.failure, "getting order analysis")
        return ResultEnvelope.success(analyze_orders(outcome.value))
