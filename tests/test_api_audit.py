"""Audit trail endpoint scoping and filters."""

from chantier.models.audit import CreateDetail
from chantier.services.audit_service import record_audit


def _seed_logs(session, actor, project_a, project_b):
    record_audit(session, actor_user_id=actor.id, entity_type="project", entity_id=project_a.id,
                 action="create", detail=CreateDetail(title="A"), project_id=project_a.id)
    record_audit(session, actor_user_id=actor.id, entity_type="task", entity_id=1,
                 action="update", project_id=project_a.id)
    record_audit(session, actor_user_id=actor.id, entity_type="project", entity_id=project_b.id,
                 action="create", detail=CreateDetail(title="B"), project_id=project_b.id)


def test_admin_sees_everything(client, session, admin, make_project, auth_headers):
    a, b = make_project(admin, title="A"), make_project(admin, title="B")
    _seed_logs(session, admin, a, b)
    res = client.get("/api/v1/audit", headers=auth_headers(admin))
    assert res.status_code == 200
    assert res.get_json()["total"] == 3


def test_filters(client, session, admin, make_project, auth_headers):
    a, b = make_project(admin, title="A"), make_project(admin, title="B")
    _seed_logs(session, admin, a, b)
    res = client.get(f"/api/v1/audit?project_id={a.id}&action=create", headers=auth_headers(admin))
    logs = res.get_json()["audit_logs"]
    assert [log["detail"]["title"] for log in logs] == ["A"]

    res = client.get("/api/v1/audit?entity_type=task", headers=auth_headers(admin))
    assert res.get_json()["total"] == 1


def test_invalid_filter_is_400(client, admin, auth_headers):
    res = client.get("/api/v1/audit?action=archive", headers=auth_headers(admin))
    assert res.status_code == 400


def test_non_admin_must_scope_to_accessible_project(
    client, session, admin, bureau, make_project, auth_headers,
):
    a = make_project(admin, title="A", bureau=bureau)
    b = make_project(admin, title="B")
    _seed_logs(session, admin, a, b)

    assert client.get("/api/v1/audit", headers=auth_headers(bureau)).status_code == 403
    assert client.get(f"/api/v1/audit?project_id={b.id}", headers=auth_headers(bureau)).status_code == 403

    res = client.get(f"/api/v1/audit?project_id={a.id}", headers=auth_headers(bureau))
    assert res.status_code == 200
    assert res.get_json()["total"] == 2


def test_pagination(client, session, admin, make_project, auth_headers):
    p = make_project(admin)
    for _ in range(5):
        record_audit(session, actor_user_id=admin.id, entity_type="project", entity_id=p.id,
                     action="update", project_id=p.id)
    res = client.get("/api/v1/audit?per_page=2&page=3", headers=auth_headers(admin))
    body = res.get_json()
    assert (body["total"], body["pages"], len(body["audit_logs"])) == (5, 3, 1)
