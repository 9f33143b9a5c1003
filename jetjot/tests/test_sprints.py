import unittest

from jetjot.db import InMemoryDocumentStore
from jetjot.errors import SprintNotFound, ValidationFailed
from jetjot.sprints import SprintStore, sprint_id
from shared.sprint_types import Priority, Subtask


class SprintIdTests(unittest.TestCase):
    def test_compact_date_range(self):
        self.assertEqual(sprint_id("2025-03-01", "2025-03-05"), "20250301_20250305")


class SprintStoreTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryDocumentStore()
        self.sprints = SprintStore(self.store, max_days=30)
        self.sprint = self.sprints.load_or_create("alice", "2025-03-01", "2025-03-03")
        self.sid = self.sprint.id

    def test_load_or_create_builds_blank_buckets(self):
        self.assertEqual(self.sid, "20250301_20250303")
        self.assertEqual(
            list(self.sprint.days), ["2025-03-01", "2025-03-02", "2025-03-03"]
        )
        self.assertTrue(all(todos == [] for todos in self.sprint.days.values()))
        self.assertEqual(self.sprint.travel_log, {})

    def test_load_or_create_is_idempotent(self):
        self.sprints.add_todo("alice", self.sid, "2025-03-02", "Pack bags")
        again = self.sprints.load_or_create("alice", "2025-03-01", "2025-03-03")
        self.assertEqual(again.id, self.sid)
        self.assertEqual(again.days["2025-03-02"][0].text, "Pack bags")
        self.assertEqual(len(self.store.sprints), 1)

    def test_single_day_sprint(self):
        sprint = self.sprints.load_or_create("alice", "2025-04-01", "2025-04-01")
        self.assertEqual(list(sprint.days), ["2025-04-01"])

    def test_sprints_are_per_owner(self):
        self.sprints.load_or_create("bob", "2025-03-01", "2025-03-03")
        self.assertEqual(len(self.store.sprints), 2)
        with self.assertRaises(SprintNotFound):
            self.sprints.get("carol", self.sid)

    def test_rejects_end_before_start(self):
        with self.assertRaises(ValidationFailed):
            self.sprints.load_or_create("alice", "2025-03-05", "2025-03-01")

    def test_rejects_too_long_range(self):
        with self.assertRaises(ValidationFailed):
            self.sprints.load_or_create("alice", "2025-01-01", "2025-03-01")

    def test_rejects_bad_dates(self):
        with self.assertRaises(ValidationFailed):
            self.sprints.load_or_create("alice", "March 1", "2025-03-01")

    def test_rename_and_list_newest_first(self):
        older = self.sprint
        newer = self.sprints.load_or_create("alice", "2025-05-01", "2025-05-02")
        self.store.sprints[("alice", older.id)]["createdAt"] = "2025-01-01T00:00:00+00:00"
        self.store.sprints[("alice", newer.id)]["createdAt"] = "2025-02-01T00:00:00+00:00"
        self.sprints.rename("alice", older.id, "Lisbon")

        listed = self.sprints.list_by_owner("alice")
        self.assertEqual([s.id for s in listed], [newer.id, older.id])
        self.assertEqual(listed[1].name, "Lisbon")

    def test_delete(self):
        self.sprints.delete("alice", self.sid)
        with self.assertRaises(SprintNotFound):
            self.sprints.get("alice", self.sid)

    def test_add_todo_appends_to_day_only(self):
        todo = self.sprints.add_todo(
            "alice", self.sid, "2025-03-01", "  Book hotel ", Priority.HIGH, "09:30"
        )
        self.assertEqual(todo.text, "Book hotel")
        self.assertEqual(todo.priority, Priority.HIGH)
        self.assertEqual(todo.time, "09:30")
        self.assertFalse(todo.completed)
        self.assertFalse(todo.recurring)

        sprint = self.sprints.get("alice", self.sid)
        self.assertEqual([t.id for t in sprint.days["2025-03-01"]], [todo.id])
        self.assertEqual(sprint.days["2025-03-02"], [])
        self.assertEqual(sprint.days["2025-03-01"][0].priority, Priority.HIGH)

    def test_add_todo_keeps_given_id(self):
        todo = self.sprints.add_todo(
            "alice", self.sid, "2025-03-01", "Call mum", todo_id="fixed-id"
        )
        self.assertEqual(todo.id, "fixed-id")

    def test_add_todo_validation(self):
        with self.assertRaises(ValidationFailed):
            self.sprints.add_todo("alice", self.sid, "2025-03-01", "   ")
        with self.assertRaises(ValidationFailed):
            self.sprints.add_todo("alice", self.sid, "2025-03-01", "x", "urgent")
        with self.assertRaises(ValidationFailed):
            self.sprints.add_todo("alice", self.sid, "2025-04-01", "x")

    def test_toggle_delete_and_edit(self):
        a = self.sprints.add_todo("alice", self.sid, "2025-03-01", "A")
        b = self.sprints.add_todo("alice", self.sid, "2025-03-01", "B")

        todos = self.sprints.toggle_todo("alice", self.sid, "2025-03-01", a.id)
        self.assertEqual([t.completed for t in todos], [True, False])
        todos = self.sprints.toggle_todo("alice", self.sid, "2025-03-01", a.id)
        self.assertFalse(todos[0].completed)

        todos = self.sprints.edit_todo_text("alice", self.sid, "2025-03-01", b.id, "B2")
        self.assertEqual(todos[1].text, "B2")

        todos = self.sprints.delete_todo("alice", self.sid, "2025-03-01", a.id)
        self.assertEqual([t.id for t in todos], [b.id])
        stored = self.sprints.day_todos("alice", self.sid, "2025-03-01")
        self.assertEqual([(t.id, t.text) for t in stored], [(b.id, "B2")])

    def test_unknown_todo_id_is_a_no_op(self):
        a = self.sprints.add_todo("alice", self.sid, "2025-03-01", "A")
        todos = self.sprints.toggle_todo("alice", self.sid, "2025-03-01", "missing")
        self.assertEqual([(t.id, t.completed) for t in todos], [(a.id, False)])

    def test_reorder_is_persisted_verbatim(self):
        a = self.sprints.add_todo("alice", self.sid, "2025-03-01", "A", Priority.LOW)
        b = self.sprints.add_todo("alice", self.sid, "2025-03-01", "B", Priority.HIGH)
        self.sprints.reorder_todos("alice", self.sid, "2025-03-01", [a, b])
        stored = self.sprints.day_todos("alice", self.sid, "2025-03-01")
        self.assertEqual([t.id for t in stored], [a.id, b.id])

        self.sprints.reorder_todos("alice", self.sid, "2025-03-01", [b, a])
        stored = self.sprints.day_todos("alice", self.sid, "2025-03-01")
        self.assertEqual([t.id for t in stored], [b.id, a.id])

    def test_subtasks(self):
        todo = self.sprints.add_todo("alice", self.sid, "2025-03-02", "Packing")
        todos = self.sprints.add_subtask(
            "alice", self.sid, "2025-03-02", todo.id, "Socks", subtask_id="s1"
        )
        todos = self.sprints.add_subtask(
            "alice", self.sid, "2025-03-02", todo.id, "Charger", subtask_id="s2"
        )
        self.assertEqual([s.id for s in todos[0].subtasks], ["s1", "s2"])

        todos = self.sprints.toggle_subtask("alice", self.sid, "2025-03-02", todo.id, "s2")
        self.assertEqual([s.completed for s in todos[0].subtasks], [False, True])
        # Completing every subtask does not complete the parent.
        todos = self.sprints.toggle_subtask("alice", self.sid, "2025-03-02", todo.id, "s1")
        self.assertFalse(todos[0].completed)

        todos = self.sprints.reorder_subtasks(
            "alice",
            self.sid,
            "2025-03-02",
            todo.id,
            [Subtask(id="s2", text="Charger", completed=True), Subtask(id="s1", text="Socks", completed=True)],
        )
        self.assertEqual([s.id for s in todos[0].subtasks], ["s2", "s1"])

        self.sprints.delete_subtask("alice", self.sid, "2025-03-02", todo.id, "s2")
        stored = self.sprints.day_todos("alice", self.sid, "2025-03-02")
        self.assertEqual([s.id for s in stored[0].subtasks], ["s1"])

    def test_missing_sprint(self):
        with self.assertRaises(SprintNotFound):
            self.sprints.add_todo("alice", "19990101_19990102", "1999-01-01", "x")


if __name__ == "__main__":
    unittest.main()
