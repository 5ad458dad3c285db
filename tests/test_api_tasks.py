"""Task and comment endpoints."""

from datetime import date

from chantier.models.audit import AuditLog
from chantier.models.task import Comment, Task


class TestListTasks:
    def test_includes_assignments_outside_scope(
        self, client, admin, terrain, make_project, make_task, auth_headers,
    ):
        visible = make_project(admin, terrain_agents=[terrain])
        hidden = make_project(admin)
        t1 = make_task(visible, title="visible")
        t2 = make_task(hidden, title="assigned", assignee=terrain)
        make_task(hidden, title="hidden")

        res = client.get("/api/v1/tasks", headers=auth_headers(terrain))
        assert res.status_code == 200
        assert {t["id"] for t in res.get_json()["items"]} == {t1.id, t2.id}

    def test_assigned_task_outside_scope_cannot_be_opened(
        self, client, admin, terrain, make_project, make_task, auth_headers,
    ):
        hidden = make_project(admin)
        t = make_task(hidden, assignee=terrain)
        assert client.get(f"/api/v1/tasks/{t.id}", headers=auth_headers(terrain)).status_code == 403

    def test_filter_by_project(self, client, admin, bureau, make_project, make_task, auth_headers):
        p = make_project(bureau)
        older = make_task(p, title="older")
        newer = make_task(p, title="newer")
        make_task(make_project(admin), title="elsewhere")

        res = client.get(f"/api/v1/tasks?project_id={p.id}", headers=auth_headers(bureau))
        assert [t["id"] for t in res.get_json()["items"]] == [newer.id, older.id]

    def test_filter_by_hidden_project_is_denied(self, client, admin, bureau, make_project, auth_headers):
        p = make_project(admin)
        res = client.get(f"/api/v1/tasks?project_id={p.id}", headers=auth_headers(bureau))
        assert res.status_code == 403

    def test_filter_by_missing_project(self, client, admin, bureau, auth_headers):
        res = client.get("/api/v1/tasks?project_id=9999", headers=auth_headers(admin))
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"

        res = client.get("/api/v1/tasks?project_id=9999", headers=auth_headers(bureau))
        assert res.status_code == 403


class TestCreateTask:
    def test_bureau_creates_task(self, client, bureau, terrain, make_project, auth_headers):
        p = make_project(bureau, terrain_agents=[terrain])
        res = client.post("/api/v1/tasks", json={
            "project_id": p.id, "title": "Coulage dalle", "assignee_id": terrain.id,
            "due_date": "2030-03-01",
        }, headers=auth_headers(bureau))
        assert res.status_code == 201
        data = res.get_json()
        assert data["status"] == "TODO"
        assert data["due_date"] == "2030-03-01"
        assert data["assignee"]["id"] == terrain.id

        log = AuditLog.query.one()
        assert (log.entity_type, log.action, log.project_id) == ("task", "create", p.id)

    def test_terrain_cannot_create(self, client, admin, terrain, make_project, auth_headers):
        p = make_project(admin, terrain_agents=[terrain])
        res = client.post("/api/v1/tasks", json={"project_id": p.id, "title": "X"},
                          headers=auth_headers(terrain))
        assert res.status_code == 403

    def test_bureau_without_project_access(self, client, admin, bureau, make_project, auth_headers):
        p = make_project(admin)
        res = client.post("/api/v1/tasks", json={"project_id": p.id, "title": "X"},
                          headers=auth_headers(bureau))
        assert res.status_code == 403
        assert Task.query.count() == 0

    def test_project_id_required(self, client, admin, auth_headers):
        res = client.post("/api/v1/tasks", json={"title": "X"}, headers=auth_headers(admin))
        assert res.status_code == 400


class TestUpdateDeleteTask:
    def test_terrain_reports_progress(self, client, admin, terrain, make_project, make_task, auth_headers):
        p = make_project(admin, terrain_agents=[terrain])
        t = make_task(p)
        res = client.patch(f"/api/v1/tasks/{t.id}", json={"status": "DOING", "progress": 60},
                           headers=auth_headers(terrain))
        assert res.status_code == 200
        assert res.get_json()["progress"] == 60
        log = AuditLog.query.filter_by(action="update").one()
        assert log.detail["status"] == {"from": "TODO", "to": "DOING"}
        assert log.actor_user_id == terrain.id

    def test_progress_out_of_range(self, client, admin, make_project, make_task, auth_headers):
        t = make_task(make_project(admin))
        res = client.patch(f"/api/v1/tasks/{t.id}", json={"progress": 101}, headers=auth_headers(admin))
        assert res.status_code == 400
        assert "progress" in res.get_json()["details"]

    def test_terrain_cannot_delete(self, client, admin, terrain, make_project, make_task, auth_headers):
        p = make_project(admin, terrain_agents=[terrain])
        t = make_task(p)
        assert client.delete(f"/api/v1/tasks/{t.id}", headers=auth_headers(terrain)).status_code == 403

    def test_bureau_deletes(self, client, bureau, make_project, make_task, auth_headers):
        t = make_task(make_project(bureau), title="Old")
        tid = t.id
        res = client.delete(f"/api/v1/tasks/{tid}", headers=auth_headers(bureau))
        assert res.status_code == 200
        assert Task.query.count() == 0
        log = AuditLog.query.filter_by(action="delete").one()
        assert log.entity_id == str(tid)

    def test_missing_task_for_admin_is_404(self, client, admin, auth_headers):
        res = client.patch("/api/v1/tasks/999", json={"progress": 1}, headers=auth_headers(admin))
        assert res.status_code == 404


class TestComments:
    def test_add_and_list(self, client, admin, terrain, make_project, make_task, auth_headers):
        p = make_project(admin, terrain_agents=[terrain])
        t = make_task(p)
        res = client.post(f"/api/v1/tasks/{t.id}/comments", json={"body": "Ferraillage posé"},
                          headers=auth_headers(terrain))
        assert res.status_code == 201
        assert res.get_json()["author"]["id"] == terrain.id

        res = client.get(f"/api/v1/tasks/{t.id}/comments", headers=auth_headers(admin))
        assert [c["body"] for c in res.get_json()["items"]] == ["Ferraillage posé"]

    def test_empty_body(self, client, admin, make_project, make_task, auth_headers):
        t = make_task(make_project(admin))
        res = client.post(f"/api/v1/tasks/{t.id}/comments", json={"body": "  "}, headers=auth_headers(admin))
        assert res.status_code == 400
        assert Comment.query.count() == 0

    def test_no_access_no_comment(self, client, admin, terrain, make_project, make_task, auth_headers):
        t = make_task(make_project(admin))
        res = client.post(f"/api/v1/tasks/{t.id}/comments", json={"body": "hi"},
                          headers=auth_headers(terrain))
        assert res.status_code == 403


def test_due_date_formats(client, admin, make_project, auth_headers):
    p = make_project(admin)
    res = client.post("/api/v1/tasks", json={"project_id": p.id, "title": "X", "due_date": "15.04.2030"},
                      headers=auth_headers(admin))
    assert res.status_code == 201
    assert res.get_json()["due_date"] == date(2030, 4, 15).isoformat()
