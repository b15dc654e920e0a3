"""Zerodha KiteConnect integration behind a tagged-outcome client interface.

`KiteBrokerClient` is the only place that touches the SDK. Every SDK call is
wrapped so that failures come back as a `BrokerOutcome` carrying an
`ErrorKind` instead of a raised exception; raw response dicts are parsed into
the small records below before they leave this module.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, List, Optional, Protocol, TypeVar, runtime_checkable

import requests
from kiteconnect import KiteConnect
from kiteconnect import exceptions as kite_exceptions

from core.config.settings import Settings
from core.logging import get_trading_logger_safe, bind_broker_context
from core.utils.exceptions import BrokerNotInitializedError, create_error_context
from .models import ErrorKind, OrderRequest

T = TypeVar("T")


# --- Broker records ---------------------------------------------------------

@dataclass(frozen=True)
class BrokerSession:
    access_token: str
    user_id: str
    public_token: Optional[str] = None


@dataclass(frozen=True)
class BrokerMargins:
    available_cash: float
    utilised_debits: float


@dataclass(frozen=True)
class BrokerHolding:
    symbol: str
    quantity: int
    average_price: float
    day_change: float = 0.0
    day_change_pct: float = 0.0


@dataclass(frozen=True)
class BrokerPosition:
    symbol: str
    net_quantity: int
    average_price: float = 0.0
    last_price: float = 0.0
    pnl: float = 0.0
    unrealised: float = 0.0
    realised: float = 0.0
    product: str = ""
    instrument_token: Optional[int] = None


@dataclass(frozen=True)
class BrokerPositions:
    net: List[BrokerPosition]
    day: List[BrokerPosition]


@dataclass(frozen=True)
class BrokerOrder:
    symbol: str
    quantity: float
    price: float


@dataclass(frozen=True)
class BrokerFailure:
    kind: ErrorKind
    code: str
    message: str


@dataclass(frozen=True)
class BrokerOutcome(Generic[T]):
    """Either a value or a failure, never both."""
    value: Optional[T] = None
    failure: Optional[BrokerFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, value: T) -> "BrokerOutcome[T]":
        return cls(value=value)

    @classmethod
    def failed(cls, kind: ErrorKind, code: str, message: str) -> "BrokerOutcome[T]":
        return cls(failure=BrokerFailure(kind=kind, code=code, message=message))


@runtime_checkable
class BrokerClient(Protocol):
    """Outbound surface the gateway needs from a brokerage."""

    def login_url(self) -> Optional[str]:
        ...

    def exchange_session(self, request_token: str) -> BrokerOutcome[BrokerSession]:
        ...

    def set_access_token(self, access_token: str) -> None:
        ...

    def on_session_expired(self, callback: Callable[[], None]) -> None:
        ...

    def place_order(self, order: OrderRequest) -> BrokerOutcome[str]:
        ...

    def get_margins(self, segment: str) -> BrokerOutcome[BrokerMargins]:
        ...

    def get_holdings(self) -> BrokerOutcome[List[BrokerHolding]]:
        ...

    def get_positions(self) -> BrokerOutcome[BrokerPositions]:
        ...

    def get_orders(self) -> BrokerOutcome[List[BrokerOrder]]:
        ...

    def invalidate_session(self, access_token: str) -> BrokerOutcome[bool]:
        ...


# --- Response parsing -------------------------------------------------------

def _parse_session(data: Dict[str, Any]) -> BrokerSession:
    return BrokerSession(
        access_token=data["access_token"],
        user_id=data.get("user_id", ""),
        public_token=data.get("public_token"),
    )


def _parse_margins(data: Dict[str, Any]) -> BrokerMargins:
    return BrokerMargins(
        available_cash=float(data["available"]["cash"]),
        utilised_debits=float(data["utilised"]["debits"]),
    )


def _parse_holding(data: Dict[str, Any]) -> BrokerHolding:
    return BrokerHolding(
        symbol=data["tradingsymbol"],
        quantity=int(data["quantity"]),
        average_price=float(data["average_price"]),
        day_change=float(data.get("day_change") or 0.0),
        day_change_pct=float(data.get("day_change_percentage") or 0.0),
    )


def _parse_position(data: Dict[str, Any]) -> BrokerPosition:
    token = data.get("instrument_token")
    return BrokerPosition(
        symbol=data["tradingsymbol"],
        net_quantity=int(data["quantity"]),
        average_price=float(data.get("average_price") or 0.0),
        last_price=float(data.get("last_price") or 0.0),
        pnl=float(data.get("pnl") or 0.0),
        unrealised=float(data.get("unrealised") or 0.0),
        realised=float(data.get("realised") or 0.0),
        product=data.get("product") or "",
        instrument_token=int(token) if token is not None else None,
    )


def _parse_positions(data: Dict[str, Any]) -> BrokerPositions:
    return BrokerPositions(
        net=[_parse_position(p) for p in data.get("net") or []],
        day=[_parse_position(p) for p in data.get("day") or []],
    )


def _parse_order(data: Dict[str, Any]) -> BrokerOrder:
    # Market orders come back with price 0 until filled; fall back to average_price
    price = data.get("price") or data.get("average_price") or 0.0
    return BrokerOrder(
        symbol=data["tradingsymbol"],
        quantity=float(data["quantity"]),
        price=float(price),
    )


class KiteBrokerClient:
    """BrokerClient backed by the official `kiteconnect` SDK."""

    def __init__(self, settings: Settings, kite: Optional[Any] = None):
        self.settings = settings
        self.kite = kite
        self.logger = bind_broker_context(get_trading_logger_safe("kite_broker_client"), "zerodha")

        if self.kite is None:
            self.kite = self._create_kite(settings)

    def _create_kite(self, settings: Settings) -> Optional[Any]:
        """Construct the SDK client. Never raises; a missing client surfaces on first use."""
        api_key = settings.zerodha.api_key
        if not api_key:
            self.logger.error("Zerodha API key is not configured.")
            return None

        try:
            kite = KiteConnect(
                api_key=api_key,
                root=settings.zerodha.root_url,
                debug=settings.zerodha.debug,
                timeout=settings.zerodha.timeout_seconds,
            )
        except Exception as e:
            self.logger.error("Failed to initialize KiteConnect client", error=str(e))
            return None

        self.logger.info("KiteConnect client initialized.")
        return kite

    def is_initialized(self) -> bool:
        return self.kite is not None

    def _require_kite(self) -> Any:
        if self.kite is None:
            raise BrokerNotInitializedError("Kite client not initialized.")
        return self.kite

    def login_url(self) -> Optional[str]:
        if self.kite is None:
            self.logger.error("KiteConnect not initialized, cannot build login URL")
            return None
        return self.kite.login_url()

    def set_access_token(self, access_token: str) -> None:
        self._require_kite().set_access_token(access_token)

    def on_session_expired(self, callback: Callable[[], None]) -> None:
        if self.kite is None:
            self.logger.warning("Session expiry hook not registered, client not initialized")
            return
        self.kite.set_session_expiry_hook(callback)

    def exchange_session(self, request_token: str) -> BrokerOutcome[BrokerSession]:
        api_secret = self.settings.zerodha.api_secret
        if not api_secret:
            return BrokerOutcome.failed(
                ErrorKind.AUTHENTICATION_ERROR, "CLIENT_NOT_INITIALIZED",
                "Zerodha API secret is not configured.",
            )
        return self._call(
            "generate_session",
            lambda kite: _parse_session(kite.generate_session(request_token, api_secret=api_secret)),
        )

    def place_order(self, order: OrderRequest) -> BrokerOutcome[str]:
        def _place(kite):
            order_id = kite.place_order(
                variety=order.variety,
                exchange=order.exchange,
                tradingsymbol=order.symbol,
                transaction_type=order.side.value,
                quantity=order.quantity,
                product=order.product,
                order_type=order.order_type,
                price=float(order.price),
                validity=order.validity,
                trigger_price=float(order.trigger_price),
                tag=order.tag,
            )
            if not order_id:
                raise ValueError("Order placement response did not include an order_id")
            return str(order_id)

        return self._call("place_order", _place)

    def get_margins(self, segment: str) -> BrokerOutcome[BrokerMargins]:
        return self._call("margins", lambda kite: _parse_margins(kite.margins(segment)))

    def get_holdings(self) -> BrokerOutcome[List[BrokerHolding]]:
        return self._call("holdings", lambda kite: [_parse_holding(h) for h in kite.holdings()])

    def get_positions(self) -> BrokerOutcome[BrokerPositions]:
        return self._call("positions", lambda kite: _parse_positions(kite.positions()))

    def get_orders(self) -> BrokerOutcome[List[BrokerOrder]]:
        return self._call("orders", lambda kite: [_parse_order(o) for o in kite.orders()])

    def invalidate_session(self, access_token: str) -> BrokerOutcome[bool]:
        return self._call(
            "invalidate_access_token",
            lambda kite: bool(kite.invalidate_access_token(access_token)),
        )

    def _call(self, operation: str, fn: Callable[[Any], T]) -> BrokerOutcome[T]:
        """Run one SDK call and fold any failure into a BrokerOutcome."""
        try:
            return BrokerOutcome.success(fn(self._require_kite()))
        except Exception as e:
            failure = classify_exception(e)
            self.logger.error(
                "Broker call failed",
                **create_error_context(e, operation, {
                    "error_kind": failure.kind.value,
                    "error_code": failure.code,
                }),
                exc_info=failure.kind is ErrorKind.UNEXPECTED_ERROR,
            )
            return BrokerOutcome(failure=failure)


def classify_exception(error: Exception) -> BrokerFailure:
    """Map an SDK or transport exception onto the gateway error taxonomy."""
    message = str(getattr(error, "message", None) or error) or type(error).__name__
    name = type(error).__name__

    if isinstance(error, BrokerNotInitializedError):
        return BrokerFailure(ErrorKind.AUTHENTICATION_ERROR, "CLIENT_NOT_INITIALIZED", message)

    if isinstance(error, kite_exceptions.KiteException):
        if isinstance(error, kite_exceptions.TokenException):
            return BrokerFailure(ErrorKind.AUTHENTICATION_ERROR, "TOKEN_EXCEPTION", message)
        if isinstance(error, kite_exceptions.NetworkException):
            return BrokerFailure(ErrorKind.NETWORK_ERROR, name, message)
        if isinstance(error, kite_exceptions.DataException):
            return BrokerFailure(ErrorKind.RESPONSE_ERROR, name, message)
        return BrokerFailure(ErrorKind.KITE_API_ERROR, name, message)

    # JSONDecodeError is a RequestException too, check it first
    if isinstance(error, requests.exceptions.JSONDecodeError):
        return BrokerFailure(ErrorKind.RESPONSE_ERROR, "JSON_EXCEPTION", message)
    # InvalidURL and friends subclass ValueError as well
    if isinstance(error, requests.exceptions.RequestException):
        return BrokerFailure(ErrorKind.NETWORK_ERROR, "IO_EXCEPTION", message)
    if isinstance(error, (ValueError, KeyError, TypeError)):
        return BrokerFailure(ErrorKind.RESPONSE_ERROR, "JSON_EXCEPTION", message)
    return BrokerFailure(ErrorKind.UNEXPECTED_ERROR, name, message)
