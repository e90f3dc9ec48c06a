"""
Project service tests: lifecycle, roster management and cascade delete.

Run: pytest backend/test_projects.py -v
"""

import pytest

import backend.store
from backend.errors import AlreadyExists, Internal, InvalidArgument, NotFound, PermissionDenied


def ids_and_roles(listing):
    return [(p["id"], p["isOwner"], p["role"]) for p in listing["collaborators"]]


class TestCreateAndRead:

    def test_create_project_defaults(self, projects, store, users):
        pid = projects.create_project("  Launch ", None, None, "u1")["projectId"]
        doc = store.get("projects", pid)
        assert doc["name"] == "Launch"
        assert doc["visibility"] == "private"
        assert doc["collaborators"] == []
        assert doc["createdAt"] == doc["updatedAt"]
        assert pid in users.get_user_profile("u1")["projects"]

    def test_create_project_requires_name(self, projects):
        with pytest.raises(InvalidArgument):
            projects.create_project("   ", "", "private", "u1")

    def test_create_project_rejects_unknown_visibility(self, projects):
        with pytest.raises(InvalidArgument):
            projects.create_project("X", "", "secret", "u1")

    def test_get_project_includes_access_flags(self, projects, project_id):
        owner_view = projects.get_project(project_id, "u1")
        assert owner_view["isOwner"] and owner_view["canEdit"]
        member_view = projects.get_project(project_id, "u2")
        assert member_view["isCollaborator"] and member_view["role"] == "Member"
        with pytest.raises(PermissionDenied):
            projects.get_project(project_id, "u3")

    def test_get_missing_project(self, projects):
        with pytest.raises(NotFound):
            projects.get_project("nope", "u1")

    def test_list_projects_splits_own_and_public(self, projects, project_id):
        public_id = projects.create_project("Open", "", "public", "u3")["projectId"]

        listing = projects.list_projects("u2")
        assert [p["id"] for p in listing["projects"]] == [project_id]
        assert [p["id"] for p in listing["publicProjects"]] == [public_id]

        owner_listing = projects.list_projects("u3")
        assert [p["id"] for p in owner_listing["projects"]] == [public_id]
        assert owner_listing["publicProjects"] == []


class TestUpdate:

    def test_collaborator_can_edit_metadata(self, projects, project_id, store):
        projects.update_project(project_id, {"name": "Relaunch", "visibility": "public", "ownerId": "u2"}, "u2")
        doc = store.get("projects", project_id)
        assert doc["name"] == "Relaunch"
        assert doc["visibility"] == "public"
        assert doc["ownerId"] == "u1"

    def test_null_visibility_is_rejected(self, projects, store):
        pid = projects.create_project("Open", "", "public", "u1")["projectId"]
        with pytest.raises(InvalidArgument):
            projects.update_project(pid, {"visibility": None}, "u1")
        assert store.get("projects", pid)["visibility"] == "public"

    def test_update_mirrors_timestamp_onto_tasks(self, projects, tasks, store, project_id):
        task_id = tasks.create_task(project_id, "T", user_id="u1")["taskId"]
        projects.update_project(project_id, {"description": "new"}, "u2")
        assert store.get("tasks", task_id)["projectUpdatedAt"] == store.get("projects", project_id)["updatedAt"]

    def test_stranger_cannot_edit(self, projects, project_id):
        with pytest.raises(PermissionDenied):
            projects.update_project(project_id, {"name": "Mine"}, "u3")

    def test_public_viewer_cannot_edit(self, projects):
        pid = projects.create_project("Open", "", "public", "u1")["projectId"]
        with pytest.raises(PermissionDenied):
            projects.update_project(pid, {"description": "x"}, "u3")


class TestRoster:

    def test_add_and_list_collaborators(self, projects):
        pid = projects.create_project("Launch", "", "private", "u1")["projectId"]
        projects.add_collaborator(pid, "u2@x.com", "Member", "u1")

        assert ids_and_roles(projects.list_collaborators(pid, "u1")) == [
            ("u1", True, "Project Owner"),
            ("u2", False, "Member"),
        ]

    def test_collaborator_email_is_case_insensitive_and_role_defaults(self, projects, project_id):
        result = projects.add_collaborator(project_id, " U3@X.com ", None, "u1")
        assert result["userId"] == "u3"
        assert result["role"] == "Member"

    def test_adding_twice_fails(self, projects, project_id):
        with pytest.raises(AlreadyExists):
            projects.add_collaborator(project_id, "u2@x.com", "Member", "u1")

    def test_adding_owner_fails(self, projects, project_id):
        with pytest.raises(AlreadyExists):
            projects.add_collaborator(project_id, "u1@x.com", "Member", "u1")

    def test_unknown_email(self, projects, project_id):
        with pytest.raises(NotFound):
            projects.add_collaborator(project_id, "ghost@x.com", "Member", "u1")

    def test_only_owner_adds(self, projects, project_id):
        with pytest.raises(PermissionDenied):
            projects.add_collaborator(project_id, "u3@x.com", "Member", "u2")

    def test_owner_cannot_be_removed(self, projects, project_id):
        with pytest.raises(PermissionDenied):
            projects.remove_collaborator(project_id, "u1", "u1")

    def test_remove_collaborator(self, projects, project_id, users):
        projects.remove_collaborator(project_id, "u2", "u1")
        assert ids_and_roles(projects.list_collaborators(project_id, "u1")) == [("u1", True, "Project Owner")]
        assert project_id not in users.get_user_profile("u2")["projects"]
        with pytest.raises(NotFound):
            projects.remove_collaborator(project_id, "u2", "u1")

    def test_collaborator_may_leave_but_not_remove_others(self, projects, project_id):
        projects.add_collaborator(project_id, "u3@x.com", "Member", "u1")
        with pytest.raises(PermissionDenied):
            projects.remove_collaborator(project_id, "u3", "u2")
        projects.remove_collaborator(project_id, "u2", "u2")
        assert [c["id"] for c in projects.list_collaborators(project_id, "u1")["collaborators"]] == ["u1", "u3"]

    def test_legacy_string_roster_is_understood(self, projects, store):
        pid = store.add("projects", {
            "name": "Old", "description": "", "visibility": "private", "ownerId": "u1",
            "collaborators": ["u1", "u2", "u2"],
        })
        assert ids_and_roles(projects.list_collaborators(pid, "u2")) == [
            ("u1", True, "Project Owner"),
            ("u2", False, "Member"),
        ]
        projects.remove_collaborator(pid, "u2", "u1")
        assert store.get("projects", pid)["collaborators"] == []


    def test_collaborator_without_profile_is_skipped(self, projects, store):
        pid = store.add("projects", {
            "name": "Old", "description": "", "visibility": "private", "ownerId": "u1",
            "collaborators": ["ghost", "u2"],
        })
        assert ids_and_roles(projects.list_collaborators(pid, "u1")) == [
            ("u1", True, "Project Owner"),
            ("u2", False, "Member"),
        ]


class TestDelete:

    def _populate(self, tasks, messages, project_id):
        for name in ("a", "b", "c"):
            tasks.create_task(project_id, name, user_id="u1")
        messages.post_message(project_id, "hello", "u2")

    def test_only_owner_deletes(self, projects, project_id):
        with pytest.raises(PermissionDenied):
            projects.delete_project(project_id, "u2")

    def test_cascade_delete(self, projects, tasks, messages, store, users, project_id):
        other = projects.create_project("Other", "", "private", "u1")["projectId"]
        tasks.create_task(other, "keep", user_id="u1")
        self._populate(tasks, messages, project_id)

        result = projects.delete_project(project_id, "u1")

        assert result["deletedTasks"] == 3
        assert result["deletedMessages"] == 1
        assert store.get("projects", project_id) is None
        assert store.query("tasks", projectId=project_id) == []
        assert store.query("messages", projectId=project_id) == []
        assert store.query("notifications", projectId=project_id) == []
        assert result["deletedNotifications"] >= 1
        assert len(store.query("tasks", projectId=other)) == 1
        assert users.get_user_profile("u1")["projects"] == [other]
        assert users.get_user_profile("u2")["projects"] == []

    def test_failed_cascade_leaves_everything(self, projects, tasks, messages, store, project_id, monkeypatch):
        self._populate(tasks, messages, project_id)
        real_apply = backend.store._apply_write

        def failing_apply(conn, op):
            if op[0] == "delete" and op[1] == "projects":
                raise RuntimeError("simulated store failure")
            return real_apply(conn, op)

        monkeypatch.setattr(backend.store, "_apply_write", failing_apply)

        with pytest.raises(Internal):
            projects.delete_project(project_id, "u1")

        monkeypatch.undo()
        assert store.get("projects", project_id) is not None
        assert len(store.query("tasks", projectId=project_id)) == 3
        assert len(store.query("messages", projectId=project_id)) == 1
        assert project_id in store.get("users", "u2")["projects"]

    def test_delete_empty_project(self, projects):
        pid = projects.create_project("Empty", "", "private", "u1")["projectId"]
        result = projects.delete_project(pid, "u1")
        assert result["deletedTasks"] == 0
        with pytest.raises(NotFound):
            projects.get_project(pid, "u1")
