"""Portfolio aggregations computed from broker records."""

from collections import defaultdict
from typing import Dict, Iterable, List, Mapping

from .broker import BrokerHolding, BrokerOrder, BrokerPosition
from .models import HoldingEntry, OrderAnalysisResult, PositionEntry, PositionsResult

UNMAPPED_SECTOR = "UNCLASSIFIED"


def to_holding_entry(holding: BrokerHolding) -> HoldingEntry:
    return HoldingEntry(
        trading_symbol=holding.symbol,
        day_change=holding.day_change,
        day_change_percentage=holding.day_change_pct,
        quantity=holding.quantity,
        average_price=holding.average_price,
    )


def to_position_entry(position: BrokerPosition) -> PositionEntry:
    return PositionEntry(
        trading_symbol=position.symbol,
        quantity=position.net_quantity,
        average_price=position.average_price,
        last_price=position.last_price,
        pnl=position.pnl,
        unrealised=position.unrealised,
        realised=position.realised,
        product=position.product,
        instrument_token=position.instrument_token,
    )


def open_positions(positions: Iterable[BrokerPosition]) -> List[BrokerPosition]:
    """Drop fully closed positions (net quantity 0)."""
    return [p for p in positions if p.net_quantity != 0]


def summarize_positions(net: Iterable[BrokerPosition], day: Iterable[BrokerPosition]) -> PositionsResult:
    net_open = open_positions(net)
    day_open = open_positions(day)
    return PositionsResult(
        net_positions=[to_position_entry(p) for p in net_open],
        day_positions=[to_position_entry(p) for p in day_open],
        total_positions=len(net_open),
        total_pnl=sum(p.pnl for p in net_open),
        total_unrealised_pnl=sum(p.unrealised for p in net_open),
    )


def portfolio_value(holdings: Iterable[BrokerHolding]) -> float:
    """Cost basis of the holdings: sum of average price times quantity."""
    return sum(h.average_price * h.quantity for h in holdings)


def sector_exposure(holdings: Iterable[BrokerHolding], sector_map: Mapping[str, str]) -> Dict[str, float]:
    """Cost basis per sector.

    Returns an empty mapping when no sector map is configured. Holdings whose
    symbol is missing from a configured map land under UNMAPPED_SECTOR.
    """
    if not sector_map:
        return {}
    exposure: Dict[str, float] = defaultdict(float)
    for holding in holdings:
        sector = sector_map.get(holding.symbol, UNMAPPED_SECTOR)
        exposure[sector] += holding.average_price * holding.quantity
    return dict(exposure)


def analyze_orders(orders: List[BrokerOrder]) -> OrderAnalysisResult:
    counts: Dict[str, int] = defaultdict(int)
    values: Dict[str, float] = defaultdict(float)
    for order in orders:
        counts[order.symbol] += 1
        values[order.symbol] += order.quantity * order.price
    return OrderAnalysisResult(
        total_orders=len(orders),
        symbol_order_count=dict(counts),
        symbol_total_value=dict(values),
    )
