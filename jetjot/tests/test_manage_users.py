import io
import unittest
from contextlib import redirect_stdout
from unittest.mock import patch

from jetjot.db import InMemoryDocumentStore
from jetjot.sprints import SprintStore
from scripts import manage_users
from shared.sprint_types import Credential


class ManageUsersScriptTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryDocumentStore()
        self.store.create_credential(Credential(username="alice", password_hash="h"))
        SprintStore(self.store).load_or_create("alice", "2025-03-01", "2025-03-02")
        patcher = patch.object(
            manage_users, "get_document_store", return_value=self.store
        )
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_list(self):
        out = io.StringIO()
        with redirect_stdout(out):
            self.assertEqual(manage_users.main(["list"]), 0)
        self.assertIn("alice", out.getvalue())
        self.assertIn("sprints=1", out.getvalue())

    def test_disable_and_grant_admin(self):
        self.assertEqual(manage_users.main(["disable", "alice"]), 0)
        self.assertEqual(manage_users.main(["grant-admin", "Alice"]), 0)
        credential = self.store.get_credential("alice")
        self.assertTrue(credential.disabled)
        self.assertTrue(credential.is_admin)

    def test_delete_needs_confirmation(self):
        with patch("builtins.input", return_value="n"):
            self.assertEqual(manage_users.main(["delete", "alice"]), 1)
        self.assertIsNotNone(self.store.get_credential("alice"))

        self.assertEqual(manage_users.main(["delete", "alice", "--yes"]), 0)
        self.assertIsNone(self.store.get_credential("alice"))
        self.assertEqual(self.store.list_sprints("alice"), [])

    def test_unknown_user_fails(self):
        self.assertEqual(manage_users.main(["enable", "ghost"]), 1)


if __name__ == "__main__":
    unittest.main()
