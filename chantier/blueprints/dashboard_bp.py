"""
Dashboard & map blueprint.

Endpoints:
    GET /api/v1/dashboard      — status breakdown, my open tasks, overdue count
    GET /api/v1/map/projects   — markers for visible projects with a position
"""

from flask import Blueprint, g, jsonify

from chantier.middleware.project_access import get_resolver, require_auth
from chantier.services import dashboard_service as svc

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/v1")


@dashboard_bp.route("/dashboard", methods=["GET"])
@require_auth
def dashboard():
    return jsonify(svc.get_dashboard(get_resolver(), g.current_user)), 200


@dashboard_bp.route("/map/projects", methods=["GET"])
@require_auth
def map_projects():
    markers = svc.get_map_markers(get_resolver(), g.current_user.id)
    return jsonify({"items": markers, "total": len(markers)}), 200
