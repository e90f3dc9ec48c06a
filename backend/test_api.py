"""
HTTP API tests.

Tokens are minted with the same SECRET_KEY the app verifies against, and the
app's store dependency is pointed at a per-test SQLite file.

Run: pytest backend/test_api.py -v
"""

import jwt
import pytest
from fastapi.testclient import TestClient

from backend.config import ALGORITHM, SECRET_KEY
from backend.db import init_db
from backend.dependencies import get_store
from backend.main import app
from backend.store import DocumentStore


def auth(user_id):
    token = jwt.encode({"sub": user_id, "email": f"{user_id}@x.com", "name": user_id.upper()}, SECRET_KEY, algorithm=ALGORITHM)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(tmp_path):
    db_path = str(tmp_path / "api.db")
    init_db(db_path)
    app.dependency_overrides[get_store] = lambda: DocumentStore(db_path)
    test_client = TestClient(app)
    for user_id in ("u1", "u2", "u3"):
        assert test_client.post("/users/me", headers=auth(user_id)).status_code == 200
    yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def project_id(client):
    response = client.post("/projects", json={"name": "Launch", "visibility": "private"}, headers=auth("u1"))
    assert response.status_code == 201
    pid = response.json()["projectId"]
    response = client.post(f"/projects/{pid}/collaborators", json={"email": "u2@x.com"}, headers=auth("u1"))
    assert response.status_code == 201
    return pid


class TestAuth:

    def test_health_is_public(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_missing_token(self, client):
        assert client.get("/projects").status_code in (401, 403)

    def test_bad_token(self, client):
        response = client.get("/projects", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_wrong_secret(self, client):
        token = jwt.encode({"sub": "u1"}, SECRET_KEY + "-other", algorithm=ALGORITHM)
        response = client.get("/projects", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401


class TestProfile:

    def test_profile_from_token(self, client):
        profile = client.get("/users/me", headers=auth("u1")).json()
        assert profile["email"] == "u1@x.com"
        assert profile["displayName"] == "U1"

    def test_update_display_name(self, client):
        assert client.patch("/users/me", json={"displayName": "Una"}, headers=auth("u1")).status_code == 200
        assert client.get("/users/me", headers=auth("u1")).json()["displayName"] == "Una"

    def test_blank_display_name(self, client):
        response = client.patch("/users/me", json={"displayName": "  "}, headers=auth("u1"))
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidArgument"


class TestErrorMapping:

    def test_not_found(self, client):
        response = client.get("/projects/missing", headers=auth("u1"))
        assert response.status_code == 404
        assert response.json() == {"detail": "Project not found", "error": "NotFound"}

    def test_permission_denied(self, client, project_id):
        response = client.delete(f"/projects/{project_id}", headers=auth("u2"))
        assert response.status_code == 403
        assert response.json()["error"] == "PermissionDenied"

    def test_already_exists(self, client, project_id):
        response = client.post(f"/projects/{project_id}/collaborators", json={"email": "u2@x.com"}, headers=auth("u1"))
        assert response.status_code == 409
        assert response.json()["error"] == "AlreadyExists"

    def test_invalid_argument(self, client, project_id):
        response = client.post(f"/projects/{project_id}/tasks", json={"name": ""}, headers=auth("u1"))
        assert response.status_code == 400

    def test_malformed_body_is_invalid_argument(self, client, project_id):
        response = client.post("/projects", json={"name": "x" * 201}, headers=auth("u1"))
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidArgument"
        assert "name" in response.json()["detail"]

    def test_non_boolean_completed_is_invalid_argument(self, client, project_id):
        task_id = client.post(f"/projects/{project_id}/tasks", json={"name": "T"}, headers=auth("u1")).json()["taskId"]
        response = client.patch(f"/tasks/{task_id}", json={"completed": "maybe"}, headers=auth("u1"))
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidArgument"


class TestWorkflow:

    def test_project_task_message_flow(self, client, project_id):
        response = client.post(
            f"/projects/{project_id}/tasks",
            json={"name": "Ship", "priority": "high", "dueDate": "2030-01-01", "unknown": 1},
            headers=auth("u2"),
        )
        assert response.status_code == 201
        task_id = response.json()["taskId"]

        assert client.post(f"/tasks/{task_id}/subtasks", json={"name": "Pack"}, headers=auth("u1")).status_code == 201
        assert client.post(f"/tasks/{task_id}/subtasks/0", headers=auth("u1")).json()["subtask"]["completed"] is True
        assert client.post(f"/tasks/{task_id}/subtasks/3", headers=auth("u1")).status_code == 400

        response = client.patch(f"/tasks/{task_id}", json={"completed": True}, headers=auth("u1"))
        assert response.status_code == 200
        assert response.json()["task"]["completedBy"] == "u1"

        details = client.get(f"/tasks/{task_id}", headers=auth("u2")).json()
        assert details["completed"] is True
        assert details["canEdit"] is True
        assert client.get(f"/tasks/{task_id}", headers=auth("u3")).status_code == 403

        stats = client.get(f"/projects/{project_id}", headers=auth("u1")).json()["stats"]
        assert stats["completedTasks"] == 1
        assert stats["highPriorityTasks"] == 1

        assert client.post(f"/projects/{project_id}/messages", json={"text": "done!"}, headers=auth("u2")).status_code == 201
        assert [m["text"] for m in client.get(f"/projects/{project_id}/messages", headers=auth("u1")).json()["messages"]] == ["done!"]

        feed = client.get("/notifications", headers=auth("u1")).json()["notifications"]
        assert {"NEW_TASK", "NEW_MESSAGE"} <= {n["type"] for n in feed}
        assert "TASK_COMPLETED" not in {n["type"] for n in feed}
        creator_feed = client.get("/notifications", headers=auth("u2")).json()["notifications"]
        completed = next(n for n in creator_feed if n["type"] == "TASK_COMPLETED")
        assert completed["completedBy"] == "u1"

        assert client.delete(f"/projects/{project_id}", headers=auth("u1")).status_code == 200
        assert client.get(f"/tasks/{task_id}", headers=auth("u1")).status_code == 404

    def test_collaborator_listing_and_removal(self, client, project_id):
        listing = client.get(f"/projects/{project_id}/collaborators", headers=auth("u2")).json()["collaborators"]
        assert [(c["id"], c["role"]) for c in listing] == [("u1", "Project Owner"), ("u2", "Member")]

        assert client.delete(f"/projects/{project_id}/collaborators/u1", headers=auth("u1")).status_code == 403
        assert client.delete(f"/projects/{project_id}/collaborators/u2", headers=auth("u1")).status_code == 200
        assert client.get(f"/projects/{project_id}", headers=auth("u2")).status_code == 403

    def test_dashboard_lists(self, client, project_id):
        client.post("/projects", json={"name": "Open", "visibility": "public"}, headers=auth("u3"))
        body = client.get("/projects", headers=auth("u2")).json()
        assert [p["name"] for p in body["projects"]] == ["Launch"]
        assert [p["name"] for p in body["publicProjects"]] == ["Open"]

    def test_notification_read_and_delete(self, client, project_id):
        feed = client.get("/notifications", headers=auth("u2")).json()
        added = next(n for n in feed["notifications"] if n["type"] == "ADDED_TO_PROJECT")
        assert client.post(f"/notifications/{added['id']}/read", headers=auth("u2")).status_code == 200
        assert client.get("/notifications", headers=auth("u2")).json()["unread"] == 0
        assert client.delete(f"/notifications/{added['id']}", headers=auth("u3")).status_code == 403
        assert client.delete(f"/notifications/{added['id']}", headers=auth("u2")).status_code == 200
