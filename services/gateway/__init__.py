"""Session-gated trading gateway over Zerodha Kite Connect."""

from .broker import (
    BrokerClient,
    BrokerFailure,
    BrokerHolding,
    BrokerMargins,
    BrokerOrder,
    BrokerOutcome,
    BrokerPosition,
    BrokerPositions,
    BrokerSession,
    KiteBrokerClient,
)
from .gateway import TradingGateway
from .models import (
    Command,
    ErrorKind,
    OrderRequest,
    ResultEnvelope,
    ResultStatus,
    TransactionType,
)
from .session import SessionEvent, SessionEventType, SessionState
from .tools import ToolRegistry, ToolSpec

__all__ = [
    "BrokerClient",
    "BrokerFailure",
    "BrokerHolding",
    "BrokerMargins",
    "BrokerOrder",
    "BrokerOutcome",
    "BrokerPosition",
    "BrokerPositions",
    "BrokerSession",
    "KiteBrokerClient",
    "TradingGateway",
    "Command",
    "ErrorKind",
    "OrderRequest",
    "ResultEnvelope",
    "ResultStatus",
    "TransactionType",
    "SessionEvent",
    "SessionEventType",
    "SessionState",
    "ToolRegistry",
    "ToolSpec",
]
