import unittest

from jetjot.admin import AccountAdmin
from jetjot.db import InMemoryDocumentStore
from jetjot.errors import CredentialNotFound
from jetjot.sprints import SprintStore
from shared.sprint_types import Credential


class AccountAdminTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryDocumentStore()
        self.store.create_credential(Credential(username="alice", password_hash="h"))
        self.store.create_credential(Credential(username="bob", password_hash="h"))
        sprints = SprintStore(self.store)
        sprints.load_or_create("alice", "2025-03-01", "2025-03-02")
        sprints.load_or_create("alice", "2025-04-01", "2025-04-02")
        sprints.load_or_create("bob", "2025-03-01", "2025-03-02")
        self.admin = AccountAdmin(self.store)

    def test_list_users_includes_sprint_counts(self):
        users = {u.username: u for u in self.admin.list_users()}
        self.assertEqual(users["alice"].sprint_count, 2)
        self.assertEqual(users["bob"].sprint_count, 1)
        self.assertFalse(users["alice"].is_admin)

    def test_flags(self):
        self.admin.set_admin(" Alice ", True)
        self.assertTrue(self.admin.is_admin("alice"))
        self.admin.set_disabled("bob", True)
        self.assertTrue(self.store.get_credential("bob").disabled)
        self.admin.set_disabled("bob", False)
        self.assertFalse(self.store.get_credential("bob").disabled)
        self.assertFalse(self.admin.is_admin("nobody"))

    def test_flag_on_missing_user(self):
        with self.assertRaises(CredentialNotFound):
            self.admin.set_disabled("ghost", True)

    def test_delete_account_removes_sprints(self):
        self.assertEqual(self.admin.delete_account("alice"), 2)
        self.assertIsNone(self.store.get_credential("alice"))
        self.assertEqual(self.store.list_sprints("alice"), [])
        self.assertEqual(len(self.store.list_sprints("bob")), 1)
        with self.assertRaises(CredentialNotFound):
            self.admin.delete_account("alice")


if __name__ == "__main__":
    unittest.main()
