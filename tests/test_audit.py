"""Audit detail shapes and the best-effort recorder."""

import json
import logging

import pytest

from chantier.models.audit import (
    AuditLog,
    CreateDetail,
    DeleteDetail,
    FieldChange,
    UpdateDetail,
    diff_status_progress,
    write_audit,
)
from chantier.models.project import Project
from chantier.services import audit_service
from chantier.services.audit_service import list_project_audit, record_audit


class TestDetailShapes:
    def test_create_detail(self):
        d = CreateDetail(title="Villa", extra={"client": "ACME"}).to_dict()
        assert d == {"kind": "create", "title": "Villa", "client": "ACME"}

    def test_update_detail_omits_unchanged_fields(self):
        d = UpdateDetail(status=FieldChange("TODO", "DOING")).to_dict()
        assert d == {"kind": "update", "status": {"from": "TODO", "to": "DOING"}}

    def test_delete_detail(self):
        assert DeleteDetail(title="Villa").to_dict() == {"kind": "delete", "title": "Villa"}

    def test_diff_status_progress(self):
        detail = diff_status_progress(
            {"status": "TODO", "progress": 10},
            {"status": "TODO", "progress": 50},
        )
        assert detail.status is None
        assert detail.progress == FieldChange(10, 50)


class TestWriteAudit:
    def test_rejects_unknown_action(self, session, admin):
        with pytest.raises(ValueError):
            write_audit(session=session, actor_user_id=admin.id, entity_type="project",
                        entity_id=1, action="archive")

    def test_rejects_unknown_entity_type(self, session, admin):
        with pytest.raises(ValueError):
            write_audit(session=session, actor_user_id=admin.id, entity_type="invoice",
                        entity_id=1, action="create")


class TestRecordAudit:
    def test_success_commits_entry(self, session, admin, make_project):
        p = make_project(admin, title="Villa")
        log = record_audit(session, actor_user_id=admin.id, entity_type="project",
                           entity_id=p.id, action="create",
                           detail=CreateDetail(title="Villa"), project_id=p.id)
        assert log is not None
        pid = p.id
        session.expunge_all()
        stored = AuditLog.query.one()
        assert stored.entity_id == str(pid)
        assert stored.project_id == pid
        assert json.loads(stored.detail_json)["kind"] == "create"

    def test_failure_is_logged_and_swallowed(self, session, admin, make_project, caplog):
        p = make_project(admin, title="Villa")
        with caplog.at_level(logging.ERROR, logger="chantier.services.audit_service"):
            result = record_audit(session, actor_user_id=admin.id, entity_type="project",
                                  entity_id=p.id, action="archive")
        assert result is None
        assert "Failed to write audit log" in caplog.text
        assert AuditLog.query.count() == 0
        assert session.get(Project, p.id) is not None

    def test_store_failure_does_not_undo_primary_change(
        self, client, admin, auth_headers, monkeypatch,
    ):
        def _boom(**kwargs):
            raise RuntimeError("audit store unavailable")

        monkeypatch.setattr(audit_service, "write_audit", _boom)
        res = client.post("/api/v1/projects", json={"title": "Villa"}, headers=auth_headers(admin))
        assert res.status_code == 201
        assert Project.query.filter_by(title="Villa").count() == 1
        assert AuditLog.query.count() == 0

    def test_list_project_audit_newest_first(self, session, admin, make_project):
        p = make_project(admin)
        for action in ("create", "update", "update"):
            record_audit(session, actor_user_id=admin.id, entity_type="project",
                         entity_id=p.id, action=action, project_id=p.id)
        logs = list_project_audit(session, p.id, limit=2)
        assert len(logs) == 2
        assert logs[0].id > logs[1].id
