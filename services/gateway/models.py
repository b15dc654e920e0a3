"""Command, order and result models for the trading gateway."""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Command(str, Enum):
    """Commands accepted by the gateway, valued by their tool names."""
    GET_LOGIN_URL = "get_login_url"
    EXCHANGE_SESSION = "generate_session"
    PLACE_ORDER = "place_order"
    GET_MARGINS = "get_margins"
    GET_HOLDINGS = "get_holdings"
    GET_POSITIONS = "get_positions"
    GET_RISK_SUMMARY = "get_risk_analysis"
    GET_ORDER_ANALYSIS = "get_order_analysis"
    LOGOUT = "logout"

    @property
    def requires_session(self) -> bool:
        return self not in (Command.GET_LOGIN_URL, Command.EXCHANGE_SESSION)


class ResultStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


class ErrorKind(str, Enum):
    """Failure taxonomy reported in the `error_type` field."""
    AUTHENTICATION_ERROR = "AUTHENTICATION_ERROR"
    KITE_API_ERROR = "KITE_API_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    RESPONSE_ERROR = "RESPONSE_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNEXPECTED_ERROR = "UNEXPECTED_ERROR"


class TransactionType(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


SESSION_REQUIRED_MESSAGE = "Kite session is not active. Please login first."
SESSION_REQUIRED_SUGGESTION = (
    "Please use get_login_url and generate_session tools to authenticate first."
)

ORDER_REJECTED_SUGGESTION = "Please check the order parameters and try again."

DEFAULT_SUGGESTIONS: Dict[ErrorKind, str] = {
    ErrorKind.AUTHENTICATION_ERROR: SESSION_REQUIRED_SUGGESTION,
    ErrorKind.KITE_API_ERROR: "Please check the request and account permissions, then try again.",
    ErrorKind.NETWORK_ERROR: "Please check your internet connection and try again.",
    ErrorKind.RESPONSE_ERROR: "Please try again later.",
    ErrorKind.VALIDATION_ERROR: "Please correct the arguments and try again.",
    ErrorKind.UNEXPECTED_ERROR: "Please try again later.",
}


class OrderRequest(BaseModel):
    """A single order as forwarded to the broker. Immutable once built."""
    model_config = ConfigDict(frozen=True)

    symbol: str = Field(min_length=1)
    side: TransactionType
    quantity: int = Field(gt=0)
    price: Decimal = Field(ge=0)
    product: str = "CNC"
    order_type: str = "LIMIT"
    exchange: str = "NSE"
    validity: str = "DAY"
    variety: str = "regular"
    trigger_price: Decimal = Decimal("0")
    tag: str = "gateway"

    @field_validator("symbol", mode="before")
    @classmethod
    def strip_symbol(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("side", mode="before")
    @classmethod
    def normalize_side(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    def details(self) -> Dict[str, Any]:
        """Order fields echoed back to the caller after placement."""
        return {
            "trading_symbol": self.symbol,
            "transaction_type": self.side.value,
            "quantity": self.quantity,
            "price": float(self.price),
            "product": self.product,
            "order_type": self.order_type,
            "validity": self.validity,
            "exchange": self.exchange,
        }


# --- Per-command results ---------------------------------------------------
# Field names are the wire keys returned to the tool caller.

class SessionResult(BaseModel):
    access_token: str
    public_token: Optional[str] = None
    user_id: str
    message: str = "Session generated successfully"


class OrderResult(BaseModel):
    order_id: str
    message: str = "Order placed successfully"
    details: Dict[str, Any]


class MarginsResult(BaseModel):
    available_cash: float
    utilised_debits: float


class HoldingEntry(BaseModel):
    trading_symbol: str
    day_change: float
    day_change_percentage: float
    quantity: int
    average_price: float


class HoldingsResult(BaseModel):
    total_holdings: int
    holdings: List[HoldingEntry]


class PositionEntry(BaseModel):
    trading_symbol: str
    quantity: int
    average_price: float
    last_price: float
    pnl: float
    unrealised: float
    realised: float
    product: str
    instrument_token: Optional[int] = None


class PositionsResult(BaseModel):
    net_positions: List[PositionEntry]
    day_positions: List[PositionEntry]
    total_positions: int
    total_pnl: float
    total_unrealised_pnl: float


class RiskSummaryResult(BaseModel):
    available_cash: float
    utilised_debits: float
    total_portfolio_value: float
    sector_exposure: Dict[str, float]


class OrderAnalysisResult(BaseModel):
    total_orders: int
    symbol_order_count: Dict[str, int]
    symbol_total_value: Dict[str, float]


class LogoutResult(BaseModel):
    user_id: Optional[str] = None
    message: str = "Logged out successfully"


@dataclass(frozen=True)
class ResultEnvelope:
    """Uniform outcome of one command. Produced fresh per call."""
    status: ResultStatus
    payload: Dict[str, Any] = field(default_factory=dict)
    error_kind: Optional[ErrorKind] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    suggestion: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is ResultStatus.SUCCESS

    @classmethod
    def success(cls, result: BaseModel) -> "ResultEnvelope":
        return cls(status=ResultStatus.SUCCESS, payload=result.model_dump())

    @classmethod
    def failure(cls, kind: ErrorKind, message: str, code: Optional[str] = None,
                suggestion: Optional[str] = None) -> "ResultEnvelope":
        return cls(
            status=ResultStatus.FAILED,
            error_kind=kind,
            error_code=code or kind.value,
            error_message=message,
            suggestion=suggestion if suggestion is not None else DEFAULT_SUGGESTIONS[kind],
        )

    @classmethod
    def session_required(cls) -> "ResultEnvelope":
        return cls.failure(
            ErrorKind.AUTHENTICATION_ERROR,
            SESSION_REQUIRED_MESSAGE,
            code="SESSION_EXPIRED",
            suggestion=SESSION_REQUIRED_SUGGESTION,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Flatten into the mapping handed back to the tool caller."""
        if self.ok:
            return {**self.payload, "status": self.status.value}
        return {
            "status": self.status.value,
            "error": self.error_message,
            "error_type": self.error_kind.value,
            "error_code": self.error_code,
            "suggestion": self.suggestion,
        }
