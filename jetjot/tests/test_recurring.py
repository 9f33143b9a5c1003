import unittest

from jetjot.db import InMemoryDocumentStore
from jetjot.errors import SprintNotFound
from jetjot.recurring import RecurringTaskManager
from jetjot.sprints import SprintStore
from shared import sprint_types


class RecordingStore(InMemoryDocumentStore):
    def __init__(self):
        super().__init__()
        self.updates = []

    def update_sprint(self, owner, sprint_id, updates):
        self.updates.append(dict(updates))
        super().update_sprint(owner, sprint_id, updates)


class RecurringTaskManagerTests(unittest.TestCase):
    def setUp(self):
        self.store = RecordingStore()
        self.sprints = SprintStore(self.store)
        self.sid = self.sprints.load_or_create("alice", "2025-03-01", "2025-03-03").id
        self.recurring = RecurringTaskManager(self.store)

    def test_add_recurring_fans_out_to_every_day(self):
        self.sprints.add_todo("alice", self.sid, "2025-03-02", "Existing")
        self.store.updates.clear()

        batch = self.recurring.add_recurring("alice", self.sid, "Stretch", "low", "07:00")

        self.assertEqual(len(self.store.updates), 1)
        self.assertEqual(
            set(self.store.updates[0]),
            {"days.2025-03-01", "days.2025-03-02", "days.2025-03-03"},
        )
        sprint = self.sprints.get("alice", self.sid)
        for key, todos in sprint.days.items():
            last = todos[-1]
            self.assertEqual(last.text, "Stretch")
            self.assertTrue(last.recurring)
            self.assertEqual(last.recurring_group_id, batch.group_id)
            self.assertEqual(last.id, batch.todos_by_date[key].id)
        self.assertEqual(sprint.days["2025-03-02"][0].text, "Existing")

        ids = [todo.id for todo in batch.todos_by_date.values()]
        self.assertEqual(len(set(ids)), 3)

    def test_remove_group_leaves_other_todos(self):
        keep = self.sprints.add_todo("alice", self.sid, "2025-03-01", "Keep me")
        batch = self.recurring.add_recurring("alice", self.sid, "Stretch")
        other = self.recurring.add_recurring("alice", self.sid, "Journal")
        self.store.updates.clear()

        removed = self.recurring.remove_group("alice", self.sid, batch.group_id)

        self.assertEqual(removed, 3)
        self.assertEqual(len(self.store.updates), 1)
        sprint = self.sprints.get("alice", self.sid)
        for todos in sprint.days.values():
            self.assertNotIn(batch.group_id, [t.recurring_group_id for t in todos])
            self.assertIn(other.group_id, [t.recurring_group_id for t in todos])
        self.assertEqual(sprint.days["2025-03-01"][0].id, keep.id)

    def test_remove_group_twice_is_harmless(self):
        batch = self.recurring.add_recurring("alice", self.sid, "Stretch")
        self.recurring.remove_group("alice", self.sid, batch.group_id)
        self.store.updates.clear()
        self.assertEqual(self.recurring.remove_group("alice", self.sid, batch.group_id), 0)
        self.assertEqual(self.store.updates, [])

    def test_write_batch_keeps_prebuilt_ids(self):
        sprint = self.sprints.get("alice", self.sid)
        batch = sprint_types.fan_out_recurring(sprint.days.keys(), "Hydrate")
        self.recurring.write_batch("alice", self.sid, batch)
        stored = self.sprints.get("alice", self.sid)
        self.assertEqual(
            {key: todos[0].id for key, todos in stored.days.items()},
            {key: todo.id for key, todo in batch.todos_by_date.items()},
        )

    def test_missing_sprint(self):
        with self.assertRaises(SprintNotFound):
            self.recurring.add_recurring("alice", "nope", "x")


if __name__ == "__main__":
    unittest.main()
