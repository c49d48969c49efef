# Overview: Flask API routes for projects, payment milestones, team members and tasks.

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth
from ..models import Project
from ..services import project_service
from ..services.gateway import get_row
from ..validation import NotFoundError, ValidationError


projects_bp = Blueprint("projects", __name__, url_prefix="/api/projects")


def _project_detail(project: Project) -> dict:
    data = project.to_dict(include_milestones=True)
    data["team_members"] = [m.to_dict() for m in project.team_members]
    data["milestone_totals"] = project_service.milestone_totals(project)
    return data


@projects_bp.get("")
@require_auth
def list_projects_route():
    projects = project_service.list_projects(
        search=request.args.get("search"),
        status=request.args.get("status"),
        contract_id=request.args.get("contract_id", type=int),
    )
    return jsonify({"items": [p.to_dict() for p in projects], "count": len(projects)})


@projects_bp.get("/<int:project_id>")
@require_auth
def get_project_route(project_id: int):
    try:
        return jsonify(_project_detail(get_row(Project, project_id, label="Project")))
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@projects_bp.post("")
@require_auth
def create_project_route():
    data = request.get_json(silent=True) or {}
    try:
        project = project_service.create_project(data)
        return jsonify(_project_detail(project)), 201
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create project")
        return jsonify({"error": "Internal server error"}), 500


@projects_bp.put("/<int:project_id>")
@require_auth
def update_project_route(project_id: int):
    data = request.get_json(silent=True) or {}
    try:
        project = project_service.update_project(project_id, data)
        return jsonify(_project_detail(project))
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400


@projects_bp.delete("/<int:project_id>")
@require_auth
def delete_project_route(project_id: int):
    try:
        project_service.delete_project(project_id)
        return jsonify({"message": "Project deleted"})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@projects_bp.post("/<int:project_id>/milestones")
@require_auth
def add_milestone_route(project_id: int):
    data = request.get_json(silent=True) or {}
    try:
        milestone = project_service.add_milestone(project_id, data)
        return jsonify(milestone.to_dict()), 201
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400


@projects_bp.put("/<int:project_id>/milestones/<int:milestone_id>")
@require_auth
def update_milestone_route(project_id: int, milestone_id: int):
    data = request.get_json(silent=True) or {}
    try:
        milestone = project_service.update_milestone(project_id, milestone_id, data)
        return jsonify(milestone.to_dict())
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400


@projects_bp.delete("/<int:project_id>/milestones/<int:milestone_id>")
@require_auth
def delete_milestone_route(project_id: int, milestone_id: int):
    try:
        project_service.delete_milestone(project_id, milestone_id)
        return jsonify({"message": "Milestone deleted"})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400


@projects_bp.get("/<int:project_id>/team")
@require_auth
def list_team_route(project_id: int):
    try:
        members = project_service.list_team_members(project_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"items": [m.to_dict() for m in members], "count": len(members)})


@projects_bp.post("/<int:project_id>/team")
@require_auth
def add_team_member_route(project_id: int):
    data = request.get_json(silent=True) or {}
    try:
        member = project_service.add_team_member(project_id, data)
        return jsonify(member.to_dict()), 201
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400


@projects_bp.put("/<int:project_id>/team/<int:member_id>")
@require_auth
def update_team_member_route(project_id: int, member_id: int):
    data = request.get_json(silent=True) or {}
    try:
        member = project_service.update_team_member(project_id, member_id, data)
        return jsonify(member.to_dict())
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400


@projects_bp.delete("/<int:project_id>/team/<int:member_id>")
@require_auth
def remove_team_member_route(project_id: int, member_id: int):
    try:
        project_service.remove_team_member(project_id, member_id)
        return jsonify({"message": "Team member removed"})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400


@projects_bp.get("/<int:project_id>/tasks")
@require_auth
def list_tasks_route(project_id: int):
    try:
        tasks = project_service.list_tasks(project_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"items": tasks, "count": len(tasks)})


@projects_bp.post("/<int:project_id>/tasks")
@require_auth
def add_task_route(project_id: int):
    data = request.get_json(silent=True) or {}
    try:
        task = project_service.add_task(project_id, data, actor_id=g.current_user.id)
        return jsonify(task.to_dict()), 201
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400


@projects_bp.put("/<int:project_id>/tasks/<int:task_id>")
@require_auth
def update_task_route(project_id: int, task_id: int):
    data = request.get_json(silent=True) or {}
    try:
        task = project_service.update_task(project_id, task_id, data, actor_id=g.current_user.id)
        return jsonify(task.to_dict())
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400


@projects_bp.delete("/<int:project_id>/tasks/<int:task_id>")
@require_auth
def delete_task_route(project_id: int, task_id: int):
    try:
        removed = project_service.delete_task(project_id, task_id)
        return jsonify({"message": "Task deleted", "removed": removed})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
