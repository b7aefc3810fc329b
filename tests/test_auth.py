import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

from qtmon.auth import (
    AuthHolder,
    FullAuth,
    RefreshTokenAuth,
    is_expired,
    load_auth,
    refresh_token_of,
    save_auth,
)

from fakes import full_auth

NOW = datetime(2024, 3, 4, 14, 0, tzinfo=timezone.utc)


def _full(expires_at):
    return FullAuth(refresh_token="rt", access_token="at", api_server="https://api01.iq.questrade.com/",
                    expires_at=expires_at)


class ExpiryTests(unittest.TestCase):
    def test_refresh_token_only_is_always_expired(self):
        self.assertTrue(is_expired(RefreshTokenAuth(refresh_token="rt"), NOW))

    def test_full_within_grace_is_expired(self):
        self.assertTrue(is_expired(_full(NOW + timedelta(minutes=4)), NOW))
        self.assertTrue(is_expired(_full(NOW + timedelta(minutes=5)), NOW))

    def test_full_outside_grace_is_valid(self):
        self.assertFalse(is_expired(_full(NOW + timedelta(minutes=6)), NOW))

    def test_already_past(self):
        self.assertTrue(is_expired(_full(NOW - timedelta(seconds=1)), NOW))

    def test_naive_expiry_treated_as_utc(self):
        auth = _full(datetime(2024, 3, 4, 15, 0))
        self.assertEqual(auth.expires_at.tzinfo, timezone.utc)
        self.assertFalse(is_expired(auth, NOW))

    def test_refresh_token_of_both_variants(self):
        self.assertEqual(refresh_token_of(RefreshTokenAuth(refresh_token="a")), "a")
        self.assertEqual(refresh_token_of(_full(NOW)), "rt")

    def test_unknown_variant(self):
        with self.assertRaises(TypeError):
            is_expired(object(), NOW)


class PersistenceTests(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = Path(self.tmp.name) / "auth.json"

    def tearDown(self):
        self.tmp.cleanup()

    def test_roundtrip_keeps_variant(self):
        save_auth(self.path, RefreshTokenAuth(refresh_token="first"))
        self.assertIsInstance(load_auth(self.path), RefreshTokenAuth)
        save_auth(self.path, _full(NOW))
        loaded = load_auth(self.path)
        self.assertIsInstance(loaded, FullAuth)
        self.assertEqual(loaded.expires_at, NOW)
        self.assertFalse(self.path.with_name("auth.json.tmp").exists())

    def test_holder_replace_persists_and_bumps_version(self):
        save_auth(self.path, RefreshTokenAuth(refresh_token="first"))
        holder = AuthHolder.from_file(self.path)
        self.assertTrue(holder.is_expired())
        self.assertEqual(holder.refresh_token, "first")
        new = full_auth(token="second")
        holder.replace(new)
        self.assertEqual(holder.version, 1)
        self.assertIs(holder.current, new)
        self.assertEqual(load_auth(self.path).refresh_token, "second")
        self.assertFalse(holder.is_expired())


if __name__ == "__main__":
    unittest.main()
