"""Project endpoints: visibility, mutation gate, geocoding and audit."""

from chantier.models import db
from chantier.models.audit import AuditLog
from chantier.models.project import Project, ProjectAssignment
from chantier.models.task import Task


class TestListProjects:
    def test_requires_token(self, client):
        res = client.get("/api/v1/projects")
        assert res.status_code == 401
        assert res.get_json()["code"] == "ERR_UNAUTHORIZED"

    def test_garbage_token_is_401(self, client):
        res = client.get("/api/v1/projects", headers={"Authorization": "Bearer nope"})
        assert res.status_code == 401

    def test_lists_only_visible_projects(self, client, admin, bureau, make_project, auth_headers):
        mine = make_project(admin, title="Mine", bureau=bureau)
        make_project(admin, title="Other")
        res = client.get("/api/v1/projects", headers=auth_headers(bureau))
        assert res.status_code == 200
        body = res.get_json()
        assert [p["id"] for p in body["items"]] == [mine.id]
        assert body["items"][0]["counts"] == {"tasks": 0, "attachments": 0}


class TestCreateProject:
    def test_bureau_creates_and_geocodes(self, client, bureau, terrain, auth_headers):
        res = client.post("/api/v1/projects", json={
            "title": "Résidence",
            "client": "Habitat Sud",
            "coordinates": "33.5731°N, 7.5898°W",
            "terrain_agent_ids": [terrain.id],
            "tags": ["logement", "R+4"],
        }, headers=auth_headers(bureau))
        assert res.status_code == 201
        data = res.get_json()
        assert data["latitude"] == 33.5731
        assert data["longitude"] == -7.5898
        assert data["created_by"]["id"] == bureau.id
        assert data["tags"] == ["logement", "R+4"]
        assert [a["id"] for a in data["terrain_agents"]] == [terrain.id]

        log = AuditLog.query.one()
        assert (log.entity_type, log.action, log.project_id) == ("project", "create", data["id"])
        assert log.detail["title"] == "Résidence"

    def test_explicit_lat_lng_win(self, client, admin, auth_headers):
        res = client.post("/api/v1/projects", json={
            "title": "Depot", "coordinates": "1.0°S, 2.0°E", "latitude": 10, "longitude": 20,
        }, headers=auth_headers(admin))
        assert res.status_code == 201
        assert (res.get_json()["latitude"], res.get_json()["longitude"]) == (10.0, 20.0)

    def test_unparsable_coordinates_leave_position_empty(self, client, admin, auth_headers):
        res = client.post("/api/v1/projects", json={"title": "Depot", "coordinates": "près du port"},
                          headers=auth_headers(admin))
        assert res.status_code == 201
        assert res.get_json()["latitude"] is None

    def test_terrain_cannot_create(self, client, terrain, auth_headers):
        res = client.post("/api/v1/projects", json={"title": "X"}, headers=auth_headers(terrain))
        assert res.status_code == 403
        assert Project.query.count() == 0

    def test_validation_errors(self, client, admin, auth_headers):
        res = client.post("/api/v1/projects", json={"title": "", "progress": 150, "status": "DONE"},
                          headers=auth_headers(admin))
        assert res.status_code == 400
        details = res.get_json()["details"]
        assert set(details) >= {"title", "progress", "status"}

    def test_bureau_id_must_be_bureau_user(self, client, admin, terrain, auth_headers):
        res = client.post("/api/v1/projects", json={"title": "X", "bureau_id": terrain.id},
                          headers=auth_headers(admin))
        assert res.status_code == 400

    def test_only_terrain_users_can_be_assigned(self, client, admin, bureau, auth_headers):
        res = client.post("/api/v1/projects", json={"title": "X", "terrain_agent_ids": [bureau.id]},
                          headers=auth_headers(admin))
        assert res.status_code == 400
        assert Project.query.count() == 0


class TestProjectDetail:
    def test_detail_payload(self, client, admin, bureau, make_project, make_task, auth_headers):
        p = make_project(admin, bureau=bureau)
        make_task(p, title="first")
        make_task(p, title="second")
        res = client.get(f"/api/v1/projects/{p.id}", headers=auth_headers(bureau))
        assert res.status_code == 200
        data = res.get_json()
        assert [t["title"] for t in data["tasks"]] == ["second", "first"]
        assert data["attachments"] == []
        assert data["audit"] == []

    def test_hidden_project_is_403_not_404(self, client, admin, bureau, make_project, auth_headers):
        p = make_project(admin)
        assert client.get(f"/api/v1/projects/{p.id}", headers=auth_headers(bureau)).status_code == 403
        assert client.get("/api/v1/projects/9999", headers=auth_headers(bureau)).status_code == 403

    def test_missing_project_is_404_for_admin(self, client, admin, auth_headers):
        assert client.get("/api/v1/projects/9999", headers=auth_headers(admin)).status_code == 404


class TestUpdateProject:
    def test_bureau_updates_and_audits_changes(self, client, bureau, make_project, auth_headers):
        p = make_project(bureau)
        res = client.patch(f"/api/v1/projects/{p.id}", json={"status": "IN_PROGRESS", "progress": 20},
                           headers=auth_headers(bureau))
        assert res.status_code == 200
        log = AuditLog.query.filter_by(action="update").one()
        assert log.detail == {
            "kind": "update",
            "status": {"from": "PLANNED", "to": "IN_PROGRESS"},
            "progress": {"from": 0, "to": 20},
        }

    def test_terrain_update_denied(self, client, admin, terrain, make_project, auth_headers):
        p = make_project(admin, terrain_agents=[terrain])
        res = client.patch(f"/api/v1/projects/{p.id}", json={"title": "Hacked"},
                           headers=auth_headers(terrain))
        assert res.status_code == 403
        assert db.session.get(Project, p.id).title == "Chantier"

    def test_reassigning_replaces_terrain_set(
        self, client, admin, terrain, terrain2, make_project, auth_headers,
    ):
        p = make_project(admin, terrain_agents=[terrain])
        res = client.patch(f"/api/v1/projects/{p.id}", json={"terrain_agent_ids": [terrain2.id]},
                           headers=auth_headers(admin))
        assert res.status_code == 200
        assert [a.user_id for a in ProjectAssignment.query.filter_by(project_id=p.id)] == [terrain2.id]

    def test_coordinates_update_regeocodes(self, client, admin, make_project, auth_headers):
        p = make_project(admin, coordinates="1.0°S, 2.0°E", latitude=-1.0, longitude=2.0)
        res = client.patch(f"/api/v1/projects/{p.id}", json={"coordinates": "lat: 5, lng: 6"},
                           headers=auth_headers(admin))
        assert (res.get_json()["latitude"], res.get_json()["longitude"]) == (5.0, 6.0)


class TestDeleteProject:
    def test_admin_deletes_with_cascade(self, client, admin, terrain, make_project, make_task, auth_headers):
        p = make_project(admin, terrain_agents=[terrain])
        make_task(p)
        pid = p.id
        res = client.delete(f"/api/v1/projects/{pid}", headers=auth_headers(admin))
        assert res.status_code == 200
        assert Project.query.count() == 0
        assert Task.query.count() == 0
        assert ProjectAssignment.query.count() == 0

        log = AuditLog.query.filter_by(action="delete").one()
        assert log.project_id == pid
        assert log.detail == {"kind": "delete", "title": "Chantier"}

    def test_bureau_delete_denied(self, client, bureau, make_project, auth_headers):
        p = make_project(bureau, bureau=bureau)
        res = client.delete(f"/api/v1/projects/{p.id}", headers=auth_headers(bureau))
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_FORBIDDEN"
        assert Project.query.count() == 1
