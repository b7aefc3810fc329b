from __future__ import annotations

from ..storage.models import BalanceSnapshot, PositionSnapshot

_ESCAPES = [("_", " "), ("%dollar", "$"), ("%slash", "/")]


def _fmt(value: float) -> str:
    return f"{value:.2f}"


def _pct(part: float, whole: float) -> float:
    if not whole:
        return float("nan")
    return part / whole * 100


def balance_pairs(sod: BalanceSnapshot, latest: BalanceSnapshot) -> dict[str, str]:
    pairs = {}
    for key, attr in (
        ("cash", "cash"),
        ("marketValue", "market_value"),
        ("totalEquity", "total_equity"),
        ("maitenanceExcess", "maintenance_excess"),
    ):
        start = getattr(sod, attr)
        now = getattr(latest, attr)
        pairs[f"%sod.{key}"] = _fmt(start)
        pairs[f"%bal.{key}"] = _fmt(now)
        pairs[f"%bal.{key}PNL"] = _fmt(_pct(now - start, start))
    return pairs


def position_pairs(pos: PositionSnapshot) -> dict[str, str]:
    name = pos.symbol
    sod_market_value = pos.current_market_value - pos.day_pnl
    open_pct = _pct(pos.open_pnl, pos.total_cost)
    closed_pct = _pct(pos.closed_pnl, pos.total_cost)
    day_pct = _pct(pos.day_pnl, sod_market_value)
    return {
        f"%{name}.openQuantity": _fmt(pos.open_quantity),
        f"%{name}.closedQuantity": _fmt(pos.closed_quantity),
        f"%{name}.currentMarketValue": _fmt(pos.current_market_value),
        f"%{name}.sodMarketValue": _fmt(sod_market_value),
        f"%{name}.currentPrice": _fmt(pos.current_price),
        f"%{name}.averageEntryPrice": _fmt(pos.average_entry_price),
        f"%{name}.openPNL": _fmt(open_pct),
        f"%{name}.closedPNL": _fmt(closed_pct),
        f"%{name}.dayPNL": _fmt(day_pct),
        f"%{name}.openPNLABS": _fmt(abs(open_pct)),
        f"%{name}.closedPNLABS": _fmt(abs(closed_pct)),
        f"%{name}.dayPNLABS": _fmt(abs(day_pct)),
        f"%{name}.totalCost": _fmt(pos.total_cost),
    }


def referenced_symbols(symbols: list[str], template: str) -> list[str]:
    return [s for s in symbols if f"%{s}." in template]


def render_statusbar(
    positions: list[PositionSnapshot],
    sod: BalanceSnapshot,
    latest: BalanceSnapshot,
    template: str,
) -> str:
    pairs = balance_pairs(sod, latest)
    for pos in positions:
        pairs.update(position_pairs(pos))
    # longest key first so %bal.cash never eats the front of %bal.cashPNL
    out = template
    for key in sorted(pairs, key=len, reverse=True):
        out = out.replace(key, pairs[key])
    for key, val in _ESCAPES:
        out = out.replace(key, val)
    return out
