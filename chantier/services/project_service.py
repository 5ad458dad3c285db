"""Project CRUD service: validation, geocoding and terrain assignments.

Authorization is the caller's job (see ``chantier.services.permission``);
functions here only validate input and mutate the session with ``flush`` so
blueprints keep transaction control.
"""

from __future__ import annotations

import logging

from chantier.core.exceptions import NotFoundError, ValidationError
from chantier.models import db
from chantier.models.audit import CreateDetail, DeleteDetail, UpdateDetail, diff_status_progress
from chantier.models.auth import Role, User
from chantier.models.project import PROJECT_STATUSES, Project, ProjectAssignment, ProjectStatus
from chantier.utils.geo import parse_coordinates
from chantier.utils.helpers import parse_bounded_int, parse_date_input

logger = logging.getLogger(__name__)

_TEXT_FIELDS = ("client", "location", "description")


def _clean_text(value) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_float(data: dict, key: str, errors: dict) -> float | None:
    value = data.get(key)
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        errors[key] = "must be a number"
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        errors[key] = "must be a number"
        return None


def _parse_tags(value) -> str | None:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        parts = [str(v).strip() for v in value]
    else:
        parts = [p.strip() for p in str(value).split(",")]
    joined = ",".join(p for p in parts if p)
    return joined or None


def _resolve_bureau(bureau_id) -> int | None:
    if bureau_id in (None, ""):
        return None
    try:
        bureau_id = int(bureau_id)
    except (TypeError, ValueError):
        raise ValidationError("bureau_id must be an integer", {"bureau_id": "not an integer"})
    user = db.session.get(User, bureau_id)
    if user is None:
        raise ValidationError("bureau_id does not reference a user", {"bureau_id": "unknown user"})
    if user.role != Role.BUREAU.value:
        raise ValidationError("bureau_id must reference a BUREAU user", {"bureau_id": "not a BUREAU user"})
    return user.id


def _resolve_terrain_agents(ids) -> list[int]:
    if not isinstance(ids, (list, tuple)):
        raise ValidationError("terrain_agent_ids must be a list", {"terrain_agent_ids": "not a list"})
    unique_ids = []
    for raw in ids:
        try:
            uid = int(raw)
        except (TypeError, ValueError):
            raise ValidationError("terrain_agent_ids must contain user ids",
                                  {"terrain_agent_ids": f"invalid id {raw!r}"})
        if uid not in unique_ids:
            unique_ids.append(uid)

    if not unique_ids:
        return []
    users = User.query.filter(User.id.in_(unique_ids)).all()
    by_id = {u.id: u for u in users}
    missing = [uid for uid in unique_ids if uid not in by_id]
    if missing:
        raise ValidationError("Unknown terrain agents", {"terrain_agent_ids": f"unknown users {missing}"})
    wrong_role = [uid for uid in unique_ids if by_id[uid].role != Role.TERRAIN.value]
    if wrong_role:
        raise ValidationError("Only TERRAIN users can be assigned",
                              {"terrain_agent_ids": f"not TERRAIN users {wrong_role}"})
    return unique_ids


def _apply_geocoding(project: Project, data: dict, errors: dict) -> None:
    """Fill latitude/longitude from explicit values, else from the coordinates text."""
    lat = _parse_float(data, "latitude", errors)
    lng = _parse_float(data, "longitude", errors)
    if "coordinates" in data:
        project.coordinates = _clean_text(data.get("coordinates"))

    if lat is not None and lng is not None:
        project.latitude, project.longitude = lat, lng
        return
    if "latitude" in data or "longitude" in data:
        if (lat is None) != (lng is None):
            errors.setdefault("latitude", "latitude and longitude must be given together")
            return
    if "coordinates" in data:
        parsed = parse_coordinates(project.coordinates)
        if parsed is None:
            if project.coordinates:
                logger.info("Could not parse coordinates %r for project %s",
                            project.coordinates, project.id)
            project.latitude, project.longitude = None, None
        else:
            project.latitude, project.longitude = parsed.latitude, parsed.longitude
    elif "latitude" in data and "longitude" in data:
        project.latitude, project.longitude = None, None


def _replace_assignments(project: Project, user_ids: list[int]) -> None:
    project.assignments = [ProjectAssignment(user_id=uid) for uid in user_ids]


def _validate_common(project: Project, data: dict, errors: dict) -> None:
    for attr in _TEXT_FIELDS:
        if attr in data:
            setattr(project, attr, _clean_text(data.get(attr)))

    if "tags" in data:
        project.tags = _parse_tags(data.get("tags"))

    if "status" in data:
        status = str(data.get("status") or "").strip().upper()
        if status not in PROJECT_STATUSES:
            errors["status"] = f"must be one of {sorted(PROJECT_STATUSES)}"
        else:
            project.status = status

    if "progress" in data:
        try:
            project.progress = parse_bounded_int(data.get("progress"), minimum=0, maximum=100)
        except ValueError as exc:
            errors["progress"] = str(exc)

    if "budget" in data:
        project.budget = _parse_float(data, "budget", errors)

    for attr in ("start_date", "end_date"):
        if attr in data:
            try:
                setattr(project, attr, parse_date_input(data.get(attr)))
            except ValueError as exc:
                errors[attr] = str(exc)

    if project.start_date and project.end_date and project.end_date < project.start_date:
        errors["end_date"] = "must not be before start_date"

    _apply_geocoding(project, data, errors)


# ═════════════════════════════════════════════════════════════════════════
# CRUD
# ═════════════════════════════════════════════════════════════════════════

def get_project(project_id: int) -> Project:
    project = db.session.get(Project, project_id)
    if project is None:
        raise NotFoundError(resource="Project", resource_id=project_id)
    return project


def create_project(*, creator: User, data: dict) -> tuple[Project, CreateDetail]:
    """Build and flush a new project owned by *creator*."""
    title = str(data.get("title", "") or "").strip()
    errors: dict = {}
    if not title:
        errors["title"] = "required"

    project = Project(
        title=title,
        created_by_id=creator.id,
        status=ProjectStatus.PLANNED.value,
        progress=0,
    )
    _validate_common(project, data, errors)
    if errors:
        raise ValidationError("Invalid project data", errors)

    project.bureau_id = _resolve_bureau(data.get("bureau_id"))
    if data.get("terrain_agent_ids") is not None:
        _replace_assignments(project, _resolve_terrain_agents(data["terrain_agent_ids"]))

    db.session.add(project)
    db.session.flush()
    logger.info("Project %s created by user %s", project.id, creator.id)

    detail = CreateDetail(
        title=project.title,
        extra={
            "client": project.client,
            "location": project.location,
            "has_coordinates": project.latitude is not None and project.longitude is not None,
        },
    )
    return project, detail


def update_project(*, project: Project, data: dict) -> tuple[Project, UpdateDetail]:
    """Apply a partial update; ``terrain_agent_ids`` replaces the assignment set."""
    before = {"status": project.status, "progress": project.progress}
    errors: dict = {}

    if "title" in data:
        title = str(data.get("title") or "").strip()
        if not title:
            errors["title"] = "cannot be empty"
        else:
            project.title = title

    _validate_common(project, data, errors)
    if errors:
        raise ValidationError("Invalid project data", errors)

    if "bureau_id" in data:
        project.bureau_id = _resolve_bureau(data.get("bureau_id"))
    if data.get("terrain_agent_ids") is not None:
        _replace_assignments(project, _resolve_terrain_agents(data["terrain_agent_ids"]))

    db.session.flush()
    return project, diff_status_progress(before, {"status": project.status, "progress": project.progress})


def delete_project(project: Project) -> DeleteDetail:
    detail = DeleteDetail(title=project.title)
    db.session.delete(project)
    db.session.flush()
    return detail


# ═════════════════════════════════════════════════════════════════════════
# Map
# ═════════════════════════════════════════════════════════════════════════

def map_marker(project: Project) -> dict | None:
    """Map marker for a project, or None when its position is unknown.

    Stored latitude/longitude win; otherwise the free-text coordinates are
    parsed with the same parser used when the project is saved.
    """
    if project.latitude is not None and project.longitude is not None:
        lat, lng = project.latitude, project.longitude
    else:
        parsed = parse_coordinates(project.coordinates)
        if parsed is None:
            return None
        lat, lng = parsed
    return {
        "id": project.id,
        "title": project.title,
        "client": project.client,
        "location": project.location,
        "status": project.status,
        "progress": project.progress,
        "latitude": lat,
        "longitude": lng,
    }
