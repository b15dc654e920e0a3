"""Tool definitions handed to the agent's tool-calling dispatcher."""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from core.logging import get_trading_logger_safe
from core.utils.exceptions import UnknownToolError
from .gateway import TradingGateway, describe_validation_error
from .models import Command, ErrorKind, ResultEnvelope


class ToolArguments(BaseModel):
    model_config = ConfigDict(extra="forbid")


class NoArguments(ToolArguments):
    pass


class GenerateSessionArguments(ToolArguments):
    request_token: str = Field(description="request_token from the Kite login redirect")


class PlaceOrderArguments(ToolArguments):
    trading_symbol: str = Field(description="Exchange trading symbol, e.g. INFY")
    transaction_type: str = Field(description="BUY or SELL")
    quantity: int = Field(description="Number of shares")
    price: float = Field(description="Limit price")
    product: Optional[str] = Field(None, description="CNC, MIS or NRML; defaults to CNC")


class GetMarginsArguments(ToolArguments):
    segment: Optional[str] = Field(None, description="equity or commodity; defaults to equity")


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    arguments: Type[ToolArguments]
    handler: Callable[[TradingGateway, Any], Any]

    @property
    def command(self) -> Command:
        return Command(self.name)

    def describe(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "requires_session": self.command.requires_session,
            "parameters": self.arguments.model_json_schema(),
        }


TOOL_SPECS: List[ToolSpec] = [
    ToolSpec(
        Command.GET_LOGIN_URL.value, "Get Kite login URL for authorization",
        NoArguments, lambda gw, args: gw.get_login_url(),
    ),
    ToolSpec(
        Command.EXCHANGE_SESSION.value, "Generate Kite session using request token",
        GenerateSessionArguments, lambda gw, args: gw.exchange_session(args.request_token),
    ),
    ToolSpec(
        Command.PLACE_ORDER.value, "Place a trading order",
        PlaceOrderArguments,
        lambda gw, args: gw.place_order(
            args.trading_symbol, args.transaction_type, args.quantity, args.price, args.product
        ),
    ),
    ToolSpec(
        Command.GET_MARGINS.value, "Get account margins",
        GetMarginsArguments, lambda gw, args: gw.get_margins(args.segment),
    ),
    ToolSpec(
        Command.GET_HOLDINGS.value, "Get current portfolio holdings",
        NoArguments, lambda gw, args: gw.get_holdings(),
    ),
    ToolSpec(
        Command.GET_POSITIONS.value, "Get current positions with P&L analysis",
        NoArguments, lambda gw, args: gw.get_positions(),
    ),
    ToolSpec(
        Command.GET_RISK_SUMMARY.value, "Get portfolio risk analysis",
        NoArguments, lambda gw, args: gw.get_risk_summary(),
    ),
    ToolSpec(
        Command.GET_ORDER_ANALYSIS.value,
        "Get order history analysis. Order value is quantity x price; orders without "
        "a limit price (market orders) are valued at their average fill price.",
        NoArguments, lambda gw, args: gw.get_order_analysis(),
    ),
    ToolSpec(
        Command.LOGOUT.value, "Invalidate the current Kite session",
        NoArguments, lambda gw, args: gw.logout(),
    ),
]


class ToolRegistry:
    """Name-based entry point onto a TradingGateway."""

    def __init__(self, gateway: TradingGateway, specs: Optional[List[ToolSpec]] = None):
        self.gateway = gateway
        self._specs: Dict[str, ToolSpec] = {s.name: s for s in (specs or TOOL_SPECS)}
        self.logger = get_trading_logger_safe("tool_registry")

    def names(self) -> List[str]:
        return list(self._specs)

    def get(self, name: str) -> ToolSpec:
        spec = self._specs.get(name)
        if spec is None:
            raise UnknownToolError(name)
        return spec

    def list_tools(self) -> List[Dict[str, Any]]:
        return [spec.describe() for spec in self._specs.values()]

    def invoke(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Any:
        """Run a tool and return its JSON-ready result.

        `get_login_url` returns the URL string (or None); every other tool
        returns the flattened result envelope. Bad arguments come back as a
        VALIDATION_ERROR envelope rather than an exception.
        """
        spec = self.get(name)
        try:
            args = spec.arguments.model_validate(arguments or {})
        except PydanticValidationError as e:
            message = describe_validation_error(e)
            self.logger.warning("Tool arguments rejected", tool=name, error=message)
            return ResultEnvelope.failure(
                ErrorKind.VALIDATION_ERROR, message, code="INVALID_ARGUMENTS"
            ).to_dict()

        self.logger.info("Invoking tool", tool=name)
        result = spec.handler(self.gateway, args)
        if isinstance(result, ResultEnvelope):
            return result.to_dict()
        return result
