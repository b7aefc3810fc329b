import math
import unittest
from datetime import time

from qtmon.api.statusbar import referenced_symbols, render_statusbar
from qtmon.storage.models import Balance, BalanceSnapshot, Position, PositionSnapshot


def _bal(cash, equity, at=time(9, 30)):
    return BalanceSnapshot.stamp(
        Balance(currency="CAD", cash=cash, market_value=equity - cash, total_equity=equity, maintenance_excess=cash),
        at,
    )


def _pos(symbol="XEQT.TO"):
    return PositionSnapshot.stamp(
        Position(symbol=symbol, open_quantity=10, current_market_value=330.0, current_price=33.0,
                 average_entry_price=30.0, day_pnl=30.0, open_pnl=30.0, total_cost=300.0),
        time(9, 30),
    )


class StatusbarTests(unittest.TestCase):
    def setUp(self):
        self.sod = _bal(100.0, 1000.0)
        self.latest = _bal(100.0, 1100.0)

    def test_balance_placeholders(self):
        out = render_statusbar([], self.sod, self.latest, "%dollar%bal.totalEquity_(%bal.totalEquityPNL%)")
        self.assertEqual(out, "$1100.00 (10.00%)")

    def test_sod_and_slash(self):
        out = render_statusbar([], self.sod, self.latest, "%sod.totalEquity%slash%bal.cash")
        self.assertEqual(out, "1000.00/100.00")

    def test_position_placeholders(self):
        out = render_statusbar([_pos()], self.sod, self.latest,
                               "%XEQT.TO.currentPrice_%XEQT.TO.dayPNL_%XEQT.TO.sodMarketValue_%XEQT.TO.openPNL")
        self.assertEqual(out, "33.00 10.00 300.00 10.00")

    def test_abs_variant(self):
        pos = _pos().model_copy(update={"open_pnl": -30.0})
        out = render_statusbar([pos], self.sod, self.latest, "%XEQT.TO.openPNL|%XEQT.TO.openPNLABS")
        self.assertEqual(out, "-10.00|10.00")

    def test_zero_denominator_is_nan(self):
        sod = _bal(0.0, 1000.0)
        out = render_statusbar([], sod, self.latest, "%bal.cashPNL")
        self.assertTrue(math.isnan(float(out)))

    def test_unknown_placeholders_untouched(self):
        out = render_statusbar([], self.sod, self.latest, "%VFV.TO.currentPrice")
        self.assertEqual(out, "%VFV.TO.currentPrice")

    def test_referenced_symbols(self):
        self.assertEqual(referenced_symbols(["XEQT.TO", "VFV.TO", "AAPL"], "%AAPL.dayPNL %XEQT.TO.openPNL"),
                         ["XEQT.TO", "AAPL"])


if __name__ == "__main__":
    unittest.main()
