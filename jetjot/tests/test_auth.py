import time
import unittest

from jetjot.auth import AuthGate, normalize_username
from jetjot.db import InMemoryDocumentStore
from jetjot.errors import (
    AccountDisabled,
    BackendUnavailable,
    InvalidCredentials,
    RateLimited,
    ValidationFailed,
)
from jetjot.ratelimit import InMemoryWindowStore, build_login_guard


class SlowStore(InMemoryDocumentStore):
    def get_credential(self, username):
        time.sleep(0.5)
        return super().get_credential(username)


class OfflineStore(InMemoryDocumentStore):
    def get_credential(self, username):
        raise ConnectionError("client is offline")


class AuthGateTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryDocumentStore()
        self.guard = build_login_guard(InMemoryWindowStore())
        self.gate = AuthGate(self.store, self.guard, bcrypt_rounds=4)

    def test_normalize_username(self):
        self.assertEqual(normalize_username("  Alice "), "alice")

    def test_unknown_username_is_provisioned(self):
        session = self.gate.login_or_create(" Alice ", "secret")
        self.assertEqual(session.username, "alice")
        self.assertTrue(session.is_new)
        self.assertFalse(session.is_admin)

        credential = self.store.get_credential("alice")
        self.assertIsNotNone(credential)
        self.assertFalse(credential.is_admin)
        self.assertFalse(credential.disabled)
        self.assertNotEqual(credential.password_hash, "secret")

    def test_existing_user_correct_password(self):
        self.gate.login_or_create("alice", "secret")
        session = self.gate.login_or_create("ALICE", "secret")
        self.assertFalse(session.is_new)
        self.assertEqual(session.username, "alice")

    def test_existing_user_wrong_password(self):
        self.gate.login_or_create("alice", "secret")
        with self.assertRaises(InvalidCredentials):
            self.gate.login_or_create("alice", "wrong")

    def test_disabled_account_rejects_correct_password(self):
        self.gate.login_or_create("alice", "secret")
        self.store.update_credential("alice", disabled=True)
        with self.assertRaises(AccountDisabled):
            self.gate.login_or_create("alice", "secret")

    def test_admin_flag_is_reported(self):
        self.gate.login_or_create("alice", "secret")
        self.store.update_credential("alice", is_admin=True)
        self.assertTrue(self.gate.login_or_create("alice", "secret").is_admin)

    def test_success_resets_user_counter(self):
        self.gate.login_or_create("alice", "secret")
        for _ in range(3):
            with self.assertRaises(InvalidCredentials):
                self.gate.login_or_create("alice", "wrong")
        self.gate.login_or_create("alice", "secret")
        self.assertEqual(self.guard.status("alice").attempts, 0)
        with self.assertRaises(InvalidCredentials):
            self.gate.login_or_create("alice", "wrong")
        self.assertEqual(self.guard.status("alice").attempts, 1)

    def test_repeated_failures_are_rate_limited(self):
        self.gate.login_or_create("bob", "secret")
        for _ in range(5):
            with self.assertRaises(InvalidCredentials):
                self.gate.login_or_create("bob", "wrong")
        # Window is full; the correct password no longer helps.
        with self.assertRaises(RateLimited) as ctx:
            self.gate.login_or_create("bob", "secret")
        self.assertEqual(ctx.exception.minutes, 15)

    def test_rate_limited_new_username_is_not_created(self):
        for i in range(15):
            self.gate.login_or_create(f"user{i}", "pw")
        with self.assertRaises(RateLimited):
            self.gate.login_or_create("latecomer", "pw")
        self.assertIsNone(self.store.get_credential("latecomer"))

    def test_empty_input_is_rejected(self):
        with self.assertRaises(ValidationFailed):
            self.gate.login_or_create("   ", "secret")
        with self.assertRaises(ValidationFailed):
            self.gate.login_or_create("alice", "")

    def test_slow_lookup_is_backend_unavailable(self):
        gate = AuthGate(SlowStore(), self.guard, timeout_seconds=0.05, bcrypt_rounds=4)
        with self.assertRaises(BackendUnavailable):
            gate.login_or_create("alice", "secret")

    def test_offline_store_is_backend_unavailable(self):
        gate = AuthGate(OfflineStore(), self.guard, bcrypt_rounds=4)
        with self.assertRaises(BackendUnavailable):
            gate.login_or_create("alice", "secret")


if __name__ == "__main__":
    unittest.main()
