import unittest
from datetime import date, time

from qtmon.storage.errors import (
    DuplicateAccountError,
    DuplicateAliasError,
    DuplicateBalanceError,
    DuplicatePositionError,
    NoAccountsSyncedError,
    NoBalanceForDayError,
    NoBalanceSyncedError,
    NoPositionForDayError,
    NoPositionsAtAllSyncedError,
    NoSymbolSyncedError,
    UnknownAccountError,
    UnknownIdentifierError,
)
from qtmon.storage.store import AccountInsert, AccountStore

from fakes import account, balance, position

DAY = date(2024, 3, 4)


class InsertAccountTests(unittest.TestCase):
    def setUp(self):
        self.store = AccountStore()

    def test_new_account(self):
        self.assertEqual(self.store.insert_account("Primary", account("123")), AccountInsert.ADDED)
        self.assertEqual(self.store.list_accounts(), ["Primary"])

    def test_empty_alias_uses_number(self):
        self.store.insert_account("", account("555"))
        self.assertEqual(self.store.list_accounts(), ["555"])

    def test_same_pair_again_is_noop(self):
        self.store.insert_account("Primary", account("123"))
        self.assertEqual(self.store.insert_account("Primary", account("123")), AccountInsert.UNCHANGED)

    def test_alias_bound_to_other_account(self):
        self.store.insert_account("Primary", account("123"))
        with self.assertRaises(DuplicateAliasError):
            self.store.insert_account("Primary", account("456"))
        self.assertNotIn("456", self.store.accounts)

    def test_account_under_other_alias(self):
        self.store.insert_account("Primary", account("123"))
        with self.assertRaises(DuplicateAccountError):
            self.store.insert_account("Main", account("123"))
        self.assertNotIn("Main", self.store.aliases)

    def test_classification_refresh(self):
        self.store.insert_account("Primary", account("123"))
        updated = account("123").model_copy(update={"status": "Closed"})
        self.assertEqual(self.store.insert_account("Primary", updated), AccountInsert.REFRESHED)
        self.assertEqual(self.store.get_account_info("Primary").account.status, "Closed")
        self.assertEqual(self.store.aliases, {"Primary": "123"})

    def test_alias_may_not_shadow_other_account_number(self):
        self.store.insert_account("Kids", account("456", primary=False))
        with self.assertRaises(DuplicateAliasError):
            self.store.insert_account("456", account("123"))
        self.assertEqual(self.store.resolve("456"), "456")
        self.assertNotIn("123", self.store.accounts)

    def test_number_may_not_collide_with_existing_alias(self):
        self.store.insert_account("456", account("123"))
        with self.assertRaises(DuplicateAliasError):
            self.store.insert_account("Kids", account("456", primary=False))
        self.assertEqual(self.store.resolve("456"), "123")
        self.assertNotIn("Kids", self.store.aliases)


class ResolveTests(unittest.TestCase):
    def setUp(self):
        self.store = AccountStore()
        self.store.insert_account("Primary", account("123"))

    def test_alias_and_number(self):
        self.assertEqual(self.store.resolve("Primary"), "123")
        self.assertEqual(self.store.resolve("123"), "123")

    def test_unknown(self):
        with self.assertRaises(UnknownIdentifierError):
            self.store.resolve("unknown")

    def test_info_reports_alias_for_number(self):
        info = self.store.get_account_info("123")
        self.assertEqual(info.alias, "Primary")
        self.assertEqual(info.account.number, "123")

    def test_empty_store_has_no_accounts(self):
        with self.assertRaises(NoAccountsSyncedError):
            AccountStore().list_accounts()


class BalanceTests(unittest.TestCase):
    def setUp(self):
        self.store = AccountStore()
        self.store.insert_account("Primary", account("123"))

    def test_unknown_account_mutates_nothing(self):
        before = self.store.model_dump()
        with self.assertRaises(UnknownAccountError):
            self.store.insert_balance("999", DAY, time(9, 30), balance(), balance())
        with self.assertRaises(UnknownAccountError):
            self.store.insert_position("999", DAY, time(9, 30), position())
        self.assertEqual(self.store.model_dump(), before)

    def test_first_insert_creates_anchor(self):
        self.store.insert_balance("123", DAY, time(9, 30), balance(1010.0), balance(1000.0))
        sod = self.store.get_start_of_day_balance("Primary", DAY)
        self.assertEqual(sod.total_equity, 1000.0)
        self.assertEqual(sod.time_retrieved, time(9, 30))
        self.assertEqual(self.store.get_latest_balance("Primary", DAY).total_equity, 1010.0)

    def test_anchor_stable(self):
        self.store.insert_balance("123", DAY, time(9, 30), balance(1010.0), balance(1000.0))
        self.store.insert_balance("123", DAY, time(9, 35), balance(1020.0), balance(777.0))
        self.store.insert_balance("123", DAY, time(9, 40), balance(1030.0), balance(888.0))
        self.assertEqual(self.store.get_start_of_day_balance("123", DAY).total_equity, 1000.0)
        self.assertEqual(self.store.get_latest_balance("123", DAY).total_equity, 1030.0)

    def test_idempotent_resync(self):
        self.store.insert_balance("123", DAY, time(9, 30), balance(1010.0), balance(1000.0))
        with self.assertRaises(DuplicateBalanceError):
            self.store.insert_balance("123", DAY, time(9, 30), balance(1010.0), balance(1000.0))
        self.assertEqual(len(self.store.balances["123"][DAY].intraday), 1)

    def test_closest(self):
        for hh, mm, eq in [(9, 0, 1.0), (9, 5, 2.0), (9, 12, 3.0)]:
            self.store.insert_balance("123", DAY, time(hh, mm), balance(eq), balance(1000.0))
        self.assertEqual(self.store.get_closest_balance("123", DAY, time(9, 7)).total_equity, 2.0)
        self.assertEqual(self.store.get_closest_balance("123", DAY, time(9, 20)).total_equity, 3.0)

    def test_no_balance_errors(self):
        with self.assertRaises(NoBalanceSyncedError):
            self.store.get_latest_balance("Primary", DAY)
        self.store.insert_balance("123", DAY, time(9, 30), balance(), balance())
        with self.assertRaises(NoBalanceForDayError):
            self.store.get_latest_balance("Primary", date(2024, 3, 5))


class PositionTests(unittest.TestCase):
    def setUp(self):
        self.store = AccountStore()
        self.store.insert_account("Primary", account("123"))

    def test_lookup_errors_in_order(self):
        with self.assertRaises(NoPositionsAtAllSyncedError):
            self.store.list_position_symbols("Primary")
        with self.assertRaises(NoPositionsAtAllSyncedError):
            self.store.get_latest_position("Primary", "XEQT.TO", DAY)
        self.store.insert_position("123", DAY, time(9, 30), position("XEQT.TO"))
        with self.assertRaises(NoSymbolSyncedError):
            self.store.get_latest_position("Primary", "VFV.TO", DAY)
        with self.assertRaises(NoPositionForDayError):
            self.store.get_latest_position("Primary", "XEQT.TO", date(2024, 3, 1))

    def test_symbols_sorted(self):
        for sym in ["ZSP.TO", "AAPL", "XEQT.TO"]:
            self.store.insert_position("123", DAY, time(9, 30), position(sym))
        self.assertEqual(self.store.list_position_symbols("123"), ["AAPL", "XEQT.TO", "ZSP.TO"])

    def test_latest_and_closest(self):
        self.store.insert_position("123", DAY, time(10, 0), position(price=31.0))
        self.store.insert_position("123", DAY, time(9, 0), position(price=30.0))
        self.assertEqual(self.store.get_latest_position("Primary", "XEQT.TO", DAY).current_price, 31.0)
        self.assertEqual(self.store.get_closest_position("Primary", "XEQT.TO", DAY, time(9, 20)).current_price, 30.0)

    def test_duplicate_position(self):
        self.store.insert_position("123", DAY, time(9, 30), position())
        with self.assertRaises(DuplicatePositionError):
            self.store.insert_position("123", DAY, time(9, 30), position())


if __name__ == "__main__":
    unittest.main()
