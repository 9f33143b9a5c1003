# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================


import unittest

from shared import sprint_types
from shared.json_utils import convert_keys
from shared.sprint_types import DayLog, Location, Priority, Sprint, Todo


class SprintTypesTest(unittest.TestCase):

    def test_blank_days_inclusive(self):
        days = sprint_types.blank_days("2025-02-27", "2025-03-02")
        self.assertEqual(
            list(days), ["2025-02-27", "2025-02-28", "2025-03-01", "2025-03-02"]
        )

    def test_new_todo_defaults(self):
        todo = sprint_types.new_todo("Pack", "high")
        self.assertEqual(todo.priority, Priority.HIGH)
        self.assertFalse(todo.completed)
        self.assertFalse(todo.recurring)
        self.assertIsNone(todo.recurring_group_id)
        self.assertEqual(todo.subtasks, [])

    def test_todo_transforms_do_not_mutate(self):
        todos = [Todo(id="a", text="A"), Todo(id="b", text="B")]
        toggled = sprint_types.toggle_todo(todos, "a")
        self.assertTrue(toggled[0].completed)
        self.assertFalse(todos[0].completed)
        self.assertIs(toggled[1], todos[1])

    def test_fan_out_recurring(self):
        batch = sprint_types.fan_out_recurring(
            ["2025-03-01", "2025-03-02"], "Stretch", "low", "07:00"
        )
        todos = list(batch.todos_by_date.values())
        self.assertEqual(len({t.id for t in todos}), 2)
        for todo in todos:
            self.assertTrue(todo.recurring)
            self.assertEqual(todo.recurring_group_id, batch.group_id)
            self.assertEqual(todo.time, "07:00")

    def test_strip_group_keeps_others(self):
        days = {
            "2025-03-01": [
                Todo(id="a", text="A", recurring=True, recurring_group_id="g1"),
                Todo(id="b", text="B"),
            ]
        }
        stripped = sprint_types.strip_group(days, "g1")
        self.assertEqual([t.id for t in stripped["2025-03-01"]], ["b"])

    def test_route_points_first_pin_per_day(self):
        travel_log = {
            "2025-03-02": DayLog(locations=[Location(id="r", lat=41.9, lng=12.5, name="Rome")]),
            "2025-03-01": DayLog(
                locations=[
                    Location(id="h", lat=0, lng=0, name="Hotel"),
                    Location(id="l", lat=38.7, lng=-9.1, name="Lisbon"),
                    Location(id="s", lat=38.8, lng=-9.4, name="Sintra"),
                ]
            ),
        }
        day_keys = ["2025-03-01", "2025-03-02", "2025-03-03"]
        self.assertEqual(
            sprint_types.route_points(travel_log, day_keys),
            [(38.7, -9.1), (41.9, 12.5)],
        )
        self.assertEqual(
            [loc.id for loc in sprint_types.pinned_locations(travel_log, day_keys)],
            ["l", "s", "r"],
        )

    def test_sprint_document_shape(self):
        sprint = Sprint(
            id="20250301_20250301",
            owner="alice",
            name="Day trip",
            start_date="2025-03-01",
            end_date="2025-03-01",
            days={"2025-03-01": [Todo(id="a", text="A", recurring_group_id="g")]},
            travel_log={"2025-03-01": DayLog(photo="data:image/jpeg;base64,AA")},
        )
        document = sprint.to_document()
        self.assertNotIn("id", document)
        self.assertIn("startDate", document)
        self.assertIn("travelLog", document)
        self.assertEqual(document["days"]["2025-03-01"][0]["recurringGroupId"], "g")

        restored = Sprint.from_document(sprint.id, document)
        self.assertEqual(restored.days["2025-03-01"][0].recurring_group_id, "g")
        self.assertEqual(restored.travel_log["2025-03-01"].photo, sprint.travel_log["2025-03-01"].photo)

    def test_convert_keys_leaves_date_keys(self):
        data = {"days": {"2025-03-01": [{"createdAt": "x"}]}}
        self.assertEqual(
            convert_keys(data, "camel_to_snake"),
            {"days": {"2025-03-01": [{"created_at": "x"}]}},
        )


if __name__ == "__main__":
    unittest.main()
