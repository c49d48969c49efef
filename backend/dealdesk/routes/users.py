# Overview: Flask API routes for user administration; parses input and returns JSON responses.

"""
User Routes

SECURITY: All routes require authentication; writes, import and export
require the admin role. Any signed-in user may search the option list
(reviewer and owner pickers).
"""

from io import BytesIO

from flask import Blueprint, request, jsonify, g, current_app, send_file

from ..decorators import require_auth, require_admin
from ..models import User
from ..services import auth_service, import_service, user_service
from ..services.gateway import get_row
from ..services.import_service import ImportFileError
from ..validation import ConflictError, NotFoundError, ValidationError


users_bp = Blueprint("users", __name__, url_prefix="/api/users")

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@users_bp.get("")
@require_auth
def list_users_route():
    include_inactive = request.args.get("include_inactive", "true").lower() == "true"
    users = user_service.list_users(
        search=request.args.get("search"),
        role=request.args.get("role"),
        include_inactive=include_inactive,
    )
    return jsonify({"items": [u.to_dict() for u in users], "count": len(users)})


@users_bp.get("/options")
@require_auth
def user_options_route():
    """Searchable picker: [{id, name, role}] sorted by name."""
    limit = request.args.get("limit", 50, type=int)
    limit = max(1, min(limit, 500))
    return jsonify({"items": user_service.user_options(request.args.get("q"), limit=limit)})


@users_bp.get("/<int:user_id>")
@require_auth
def get_user_route(user_id: int):
    try:
        return jsonify(get_row(User, user_id, label="User").to_dict())
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@users_bp.post("")
@require_auth
@require_admin
def create_user_route():
    """
    Create a user. ``password`` is optional; the import default password is
    used when it is omitted.
    """
    data = request.get_json(silent=True) or {}
    password = data.pop("password", None) or current_app.config["IMPORT_DEFAULT_PASSWORD"]
    try:
        user = user_service.create_user(data, password=password)
        return jsonify(user.to_dict()), 201
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.put("/<int:user_id>")
@require_auth
@require_admin
def update_user_route(user_id: int):
    data = request.get_json(silent=True) or {}
    try:
        user = user_service.update_user(user_id, data)
        return jsonify(user.to_dict())
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update user %s", user_id)
        return jsonify({"error": "Internal server error"}), 500


@users_bp.delete("/<int:user_id>")
@require_auth
@require_admin
def deactivate_user_route(user_id: int):
    try:
        user_service.deactivate_user(user_id, actor_id=g.current_user.id)
        return jsonify({"message": "User deactivated"})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400


@users_bp.post("/<int:user_id>/password")
@require_auth
@require_admin
def reset_password_route(user_id: int):
    data = request.get_json(silent=True) or {}
    password = data.get("password")
    if not password:
        return jsonify({"error": "password is required"}), 400
    try:
        get_row(User, user_id, label="User")
        auth_service.set_password(user_id, password)
        return jsonify({"message": "Password updated"})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400


@users_bp.post("/import")
@require_auth
@require_admin
def import_users_route():
    """
    Import users from an .xlsx upload (multipart field "file").

    Validation errors stop the import and are returned as a list; with
    ?validate_only=true nothing is written either way.
    """
    upload = request.files.get("file")
    if not upload:
        return jsonify({"error": "file is required"}), 400

    try:
        rows = import_service.parse_users_workbook(upload.read())
    except ImportFileError as e:
        return jsonify({"error": str(e)}), 400

    errors = import_service.validate_users(rows)
    if errors:
        return jsonify({"error": "Validation failed", "errors": errors, "rows": len(rows)}), 400
    if request.args.get("validate_only", "false").lower() == "true":
        return jsonify({"rows": len(rows), "errors": []})

    result = import_service.import_users(rows)
    return jsonify(result), 200


@users_bp.get("/export")
@require_auth
@require_admin
def export_users_route():
    data = import_service.export_users_workbook()
    return send_file(
        BytesIO(data),
        mimetype=XLSX_MIMETYPE,
        as_attachment=True,
        download_name="users.xlsx",
    )
