"""
Shared pytest fixtures for the Chantier Tracker test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - admin / bureau / bureau2 / terrain / terrain2: one user per role
    - auth_headers: factory returning Bearer headers for a user
    - resolver: AccessResolver bound to the test session
    - make_project / make_task: model factories
"""

from datetime import datetime, timedelta, timezone

import pytest

from chantier import create_app
from chantier.models import db as _db
from chantier.models.auth import Role, User
from chantier.models.project import Project, ProjectAssignment
from chantier.models.task import Task
from chantier.services.access_resolver import AccessResolver
from chantier.services.jwt_service import generate_access_token

# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield _db.session
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture()
def resolver(session):
    return AccessResolver(session)


# ── Users ────────────────────────────────────────────────────────────────


def _make_user(email, name, role):
    user = User(email=email, name=name, role=role)
    _db.session.add(user)
    _db.session.commit()
    return user


@pytest.fixture()
def admin():
    return _make_user("admin@example.com", "Admin", Role.ADMIN.value)


@pytest.fixture()
def bureau():
    return _make_user("bureau@example.com", "Bureau One", Role.BUREAU.value)


@pytest.fixture()
def bureau2():
    return _make_user("bureau2@example.com", "Bureau Two", Role.BUREAU.value)


@pytest.fixture()
def terrain():
    return _make_user("terrain@example.com", "Terrain One", Role.TERRAIN.value)


@pytest.fixture()
def terrain2():
    return _make_user("terrain2@example.com", "Terrain Two", Role.TERRAIN.value)


@pytest.fixture()
def auth_headers(app):
    """Factory: ``auth_headers(user)`` → Authorization header dict."""
    def _headers(user):
        token = generate_access_token(user.id, user.role)
        return {"Authorization": f"Bearer {token}"}
    return _headers


# ── Factories ────────────────────────────────────────────────────────────


@pytest.fixture()
def make_project():
    """Factory creating a committed Project.

    ``age_minutes`` backdates updated_at so list ordering is deterministic.
    """
    def _make(creator, title="Chantier", bureau=None, terrain_agents=(), age_minutes=0, **fields):
        project = Project(
            title=title,
            created_by_id=creator.id,
            bureau_id=bureau.id if bureau else None,
            updated_at=datetime.now(timezone.utc) - timedelta(minutes=age_minutes),
            **fields,
        )
        project.assignments = [ProjectAssignment(user_id=u.id) for u in terrain_agents]
        _db.session.add(project)
        _db.session.commit()
        return project
    return _make


@pytest.fixture()
def make_task():
    def _make(project, title="Task", assignee=None, **fields):
        task = Task(
            project_id=project.id,
            title=title,
            assignee_id=assignee.id if assignee else None,
            **fields,
        )
        _db.session.add(task)
        _db.session.commit()
        return task
    return _make
