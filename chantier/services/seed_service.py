"""
Demo data for local development (``flask seed-demo``).

Idempotent: users are matched by email and projects by title, so running
the command twice leaves a single copy.  The caller commits.
"""

import logging
from datetime import date, timedelta

from chantier.models import db
from chantier.models.auth import Role, User
from chantier.models.project import Attachment, Project, ProjectAssignment, ProjectStatus
from chantier.models.task import Task, TaskStatus
from chantier.utils.crypto import hash_password
from chantier.utils.geo import parse_coordinates

logger = logging.getLogger(__name__)

DEMO_PASSWORD = "demo1234"

DEMO_USERS = [
    {"email": "admin@demo.chantier.fr", "name": "Admin", "role": Role.ADMIN.value},
    {"email": "bureau@demo.chantier.fr", "name": "Bureau d'études", "role": Role.BUREAU.value},
    {"email": "terrain@demo.chantier.fr", "name": "Chef de chantier", "role": Role.TERRAIN.value},
]

DEMO_PROJECTS = [
    {
        "title": "Résidence Les Oliviers",
        "client": "Habitat Sud",
        "location": "Casablanca",
        "coordinates": "33.5731°N, 7.5898°W",
        "status": ProjectStatus.IN_PROGRESS.value,
        "progress": 35,
        "tasks": [
            ("Fondations", TaskStatus.DONE.value, 100, -20),
            ("Gros œuvre R+1", TaskStatus.DOING.value, 40, 15),
            ("Étanchéité toiture", TaskStatus.TODO.value, 0, None),
        ],
        "attachments": [("plan-masse.pdf", "https://files.example.com/oliviers/plan-masse.pdf")],
    },
    {
        "title": "Entrepôt Zone Nord",
        "client": "LogiTrans",
        "location": "Rabat",
        "coordinates": "lat: 34.0209, lng: -6.8416",
        "status": ProjectStatus.PLANNED.value,
        "progress": 0,
        "tasks": [
            ("Étude de sol", TaskStatus.TODO.value, 0, 7),
        ],
        "attachments": [],
    },
]


def _get_or_create_user(entry: dict) -> User:
    user = User.query.filter_by(email=entry["email"]).first()
    if user is None:
        user = User(password_hash=hash_password(DEMO_PASSWORD), **entry)
        db.session.add(user)
        db.session.flush()
    return user


def seed_demo(today: date | None = None) -> dict:
    """Create the demo dataset; returns counts of what was added."""
    today = today or date.today()
    users = {u["role"]: _get_or_create_user(u) for u in DEMO_USERS}
    admin, bureau, terrain = users[Role.ADMIN.value], users[Role.BUREAU.value], users[Role.TERRAIN.value]

    added = {"projects": 0, "tasks": 0, "attachments": 0}
    for entry in DEMO_PROJECTS:
        if Project.query.filter_by(title=entry["title"]).first():
            continue
        coords = parse_coordinates(entry["coordinates"])
        project = Project(
            title=entry["title"],
            client=entry["client"],
            location=entry["location"],
            coordinates=entry["coordinates"],
            latitude=coords.latitude if coords else None,
            longitude=coords.longitude if coords else None,
            status=entry["status"],
            progress=entry["progress"],
            created_by_id=admin.id,
            bureau_id=bureau.id,
        )
        project.assignments = [ProjectAssignment(user_id=terrain.id)]
        db.session.add(project)
        db.session.flush()
        added["projects"] += 1

        for title, status, progress, due_in in entry["tasks"]:
            db.session.add(Task(
                project_id=project.id,
                title=title,
                status=status,
                progress=progress,
                assignee_id=terrain.id,
                due_date=today + timedelta(days=due_in) if due_in is not None else None,
            ))
            added["tasks"] += 1

        for filename, url in entry["attachments"]:
            db.session.add(Attachment(
                project_id=project.id, filename=filename, url=url, uploaded_by_id=bureau.id,
            ))
            added["attachments"] += 1

    db.session.flush()
    logger.info("Demo seed added %s", added)
    return added
