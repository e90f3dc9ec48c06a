"""
Propagation and notification feed tests.

- statistics are recomputed from source and stable under repetition
- replayed events never duplicate notifications
- the feed shows each user what reaches them, with per-user read state

Run: pytest backend/test_propagation.py -v
"""

from datetime import date

import pytest

from backend.errors import InvalidArgument, NotFound, PermissionDenied
from backend.modules.propagation import compute_stats, is_overdue


class TestStats:

    def test_compute_stats(self):
        today = date(2024, 6, 1)
        tasks = [
            {"priority": "high", "completed": False, "dueDate": "2024-05-31"},
            {"priority": "high", "completed": True, "dueDate": "2024-05-01"},
            {"priority": "low", "completed": False, "dueDate": "2024-06-01"},
            {"priority": "medium", "completed": False, "dueDate": None},
        ]
        stats = compute_stats(tasks, today)
        assert stats.totalTasks == 4
        assert stats.completedTasks == 1
        assert stats.highPriorityTasks == 2
        assert stats.overdueTasks == 1

    def test_due_today_is_not_overdue(self):
        assert not is_overdue({"dueDate": "2024-06-01", "completed": False}, date(2024, 6, 1))
        assert is_overdue({"dueDate": "2024-05-31T10:00:00Z", "completed": False}, date(2024, 6, 1))

    def test_recompute_is_idempotent(self, propagation, tasks, store, project_id):
        tasks.create_task(project_id, "a", priority="high", user_id="u1")
        tasks.create_task(project_id, "b", due_date="2000-01-01", user_id="u1")

        first = propagation.recompute_project_stats(project_id)
        second = propagation.recompute_project_stats(project_id)
        assert first == second == {"totalTasks": 2, "completedTasks": 0, "highPriorityTasks": 1, "overdueTasks": 1}
        assert store.get("projects", project_id)["stats"] == first

    def test_recompute_repairs_drifted_stats(self, propagation, tasks, store, project_id):
        tasks.create_task(project_id, "a", user_id="u1")
        store.update("projects", project_id, {"stats": {"totalTasks": 99, "completedTasks": 42}})
        assert propagation.recompute_project_stats(project_id)["totalTasks"] == 1

    def test_recompute_for_deleted_project_is_noop(self, propagation):
        assert propagation.recompute_project_stats("gone") is None


class TestProjectTimestamp:

    def test_touch_project_mirrors_onto_tasks(self, propagation, tasks, store, project_id):
        first = tasks.create_task(project_id, "a", user_id="u1")["taskId"]
        second = tasks.create_task(project_id, "b", user_id="u1")["taskId"]

        project = propagation.touch_project(project_id, {"description": "changed"})
        assert project["description"] == "changed"
        for task_id in (first, second):
            assert store.get("tasks", task_id)["projectUpdatedAt"] == project["updatedAt"]

    def test_project_updated_replay_writes_nothing(self, propagation, tasks, store, project_id):
        tasks.create_task(project_id, "a", user_id="u1")
        stamp = store.get("projects", project_id)["updatedAt"]
        assert propagation.project_updated(project_id, stamp) == 0
        assert propagation.project_updated(project_id, "2030-01-01T00:00:00+00:00") == 1

    def test_touch_missing_project(self, propagation):
        assert propagation.touch_project("gone", {"name": "x"}) is None


class TestRedelivery:

    def test_task_completed_replay(self, propagation, tasks, store, project_id):
        task_id = tasks.create_task(project_id, "T", user_id="u1")["taskId"]
        tasks.update_task(task_id, project_id, {"completed": True}, "u2")
        task = store.get("tasks", task_id)

        propagation.task_completed(task)
        propagation.task_completed(task)

        completed = [n for n in store.query("notifications") if n["type"] == "TASK_COMPLETED"]
        assert len(completed) == 1

    def test_collaborators_changed_replay(self, propagation, store, project_id):
        project = store.get("projects", project_id)
        roster = project["collaborators"]
        assert propagation.collaborators_changed(project, [], roster) == []

        added = [n for n in store.query("notifications") if n["type"] == "ADDED_TO_PROJECT"]
        assert [n["userId"] for n in added] == ["u2"]

    def test_collaborators_changed_only_notifies_new_members(self, propagation, store, project_id):
        project = store.get("projects", project_id)
        new_roster = project["collaborators"] + ["u3"]
        created = propagation.collaborators_changed(project, project["collaborators"], new_roster)
        assert len(created) == 1
        assert store.get("notifications", created[0])["userId"] == "u3"

    def test_entity_created_replay(self, propagation, store, project_id):
        doc = {"id": "t1", "name": "x", "projectId": project_id}
        assert propagation.entity_created("tasks", doc) == propagation.entity_created("tasks", doc)
        assert len([n for n in store.query("notifications") if n.get("taskId") == "t1"]) == 1

    def test_entity_created_unknown_collection(self, propagation):
        assert propagation.entity_created("users", {"id": "u9"}) is None


class TestFeed:

    def test_feed_contents_per_user(self, notifications, tasks, messages, project_id):
        tasks.create_task(project_id, "T", user_id="u1")
        messages.post_message(project_id, "hi", "u2")

        u2_types = sorted(n["type"] for n in notifications.list_notifications("u2")["notifications"])
        assert u2_types == ["ADDED_TO_PROJECT", "NEW_TASK"]

        u1_types = sorted(n["type"] for n in notifications.list_notifications("u1")["notifications"])
        assert u1_types == ["NEW_MESSAGE", "NEW_TASK"]

        assert notifications.list_notifications("u3")["notifications"] == []

    def test_new_project_reaches_recipients(self, notifications, propagation, store, users):
        doc = {"name": "Seeded", "ownerId": "u1", "visibility": "private", "collaborators": ["u3"]}
        pid = store.add("projects", doc)
        users.link_project("u3", pid)
        propagation.entity_created("projects", {"id": pid, **doc})
        feed = notifications.list_notifications("u3")["notifications"]
        assert [n["type"] for n in feed] == ["NEW_PROJECT"]
        assert "recipients" not in feed[0]

    def test_feed_uses_filtered_lookups_only(self, notifications, store, tasks, projects, project_id, monkeypatch):
        projects.create_project("Public", "", "public", "u3")
        tasks.create_task(project_id, "T", user_id="u1")

        calls = []
        original = store.query

        def recording_query(collection, **filters):
            calls.append((collection, filters))
            return original(collection, **filters)

        monkeypatch.setattr(store, "query", recording_query)
        feed = notifications.list_notifications("u2")["notifications"]

        assert sorted(n["type"] for n in feed) == ["ADDED_TO_PROJECT", "NEW_TASK"]
        assert calls
        assert all(filters for _, filters in calls)

    def test_removed_member_loses_project_feed(self, notifications, projects, tasks, project_id):
        tasks.create_task(project_id, "T", user_id="u1")
        projects.remove_collaborator(project_id, "u2", "u1")
        types = [n["type"] for n in notifications.list_notifications("u2")["notifications"]]
        assert types == ["ADDED_TO_PROJECT"]

    def test_limit_and_order(self, notifications, tasks, project_id):
        for name in ("a", "b", "c"):
            tasks.create_task(project_id, name, user_id="u1")
        feed = notifications.list_notifications("u2", limit=2)["notifications"]
        assert [n["taskName"] for n in feed] == ["c", "b"]
        with pytest.raises(InvalidArgument):
            notifications.list_notifications("u2", limit=0)

    def test_read_state_is_per_user(self, notifications, tasks, project_id):
        tasks.create_task(project_id, "T", user_id="u1")
        shared = next(n for n in notifications.list_notifications("u2")["notifications"] if n["type"] == "NEW_TASK")

        notifications.mark_read(shared["id"], "u2")
        assert next(n for n in notifications.list_notifications("u2")["notifications"] if n["id"] == shared["id"])["read"]
        assert not next(n for n in notifications.list_notifications("u1")["notifications"] if n["id"] == shared["id"])["read"]

    def test_mark_read_direct(self, notifications, project_id):
        feed = notifications.list_notifications("u2")
        direct = feed["notifications"][0]
        assert feed["unread"] == 1

        notifications.mark_read(direct["id"], "u2")
        assert notifications.list_notifications("u2")["unread"] == 0

    def test_mark_read_invisible(self, notifications, project_id):
        direct = notifications.list_notifications("u2")["notifications"][0]
        with pytest.raises(NotFound):
            notifications.mark_read(direct["id"], "u3")

    def test_delete_only_direct(self, notifications, store, tasks, project_id):
        tasks.create_task(project_id, "T", user_id="u1")
        feed = notifications.list_notifications("u2")["notifications"]
        direct = next(n for n in feed if n["type"] == "ADDED_TO_PROJECT")
        shared = next(n for n in feed if n["type"] == "NEW_TASK")

        with pytest.raises(PermissionDenied):
            notifications.delete_notification(shared["id"], "u2")
        notifications.delete_notification(direct["id"], "u2")
        assert store.get("notifications", direct["id"]) is None
        with pytest.raises(NotFound):
            notifications.delete_notification(direct["id"], "u2")
