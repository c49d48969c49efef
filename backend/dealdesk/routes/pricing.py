# Overview: Flask API routes for license pricing; parses input and returns JSON responses.

"""
License Pricing Routes

Any signed-in user can read the price list (offer components pick from it);
changes, import and export are admin-only.
"""

from io import BytesIO

from flask import Blueprint, request, jsonify, current_app, send_file

from ..decorators import require_auth, require_admin
from ..models import LicensePricing
from ..services import import_service, masterdata_service
from ..services.gateway import get_row
from ..services.import_service import ImportFileError
from ..validation import ConflictError, NotFoundError, ValidationError
from .users import XLSX_MIMETYPE


pricing_bp = Blueprint("pricing", __name__, url_prefix="/api/pricing")


@pricing_bp.get("")
@require_auth
def list_pricing_route():
    rows = masterdata_service.list_pricing(
        search=request.args.get("search"),
        type_=request.args.get("type"),
    )
    return jsonify({"items": [r.to_dict() for r in rows], "count": len(rows)})


@pricing_bp.get("/<int:pricing_id>")
@require_auth
def get_pricing_route(pricing_id: int):
    try:
        return jsonify(get_row(LicensePricing, pricing_id, label="License pricing").to_dict())
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@pricing_bp.post("")
@require_auth
@require_admin
def create_pricing_route():
    data = request.get_json(silent=True) or {}
    try:
        row = masterdata_service.create_pricing(data)
        return jsonify(row.to_dict()), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create license pricing")
        return jsonify({"error": "Internal server error"}), 500


@pricing_bp.put("/<int:pricing_id>")
@require_auth
@require_admin
def update_pricing_route(pricing_id: int):
    data = request.get_json(silent=True) or {}
    try:
        row = masterdata_service.update_pricing(pricing_id, data)
        return jsonify(row.to_dict())
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400


@pricing_bp.delete("/<int:pricing_id>")
@require_auth
@require_admin
def delete_pricing_route(pricing_id: int):
    try:
        masterdata_service.delete_pricing(pricing_id)
        return jsonify({"message": "License pricing deleted"})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409


@pricing_bp.post("/import")
@require_auth
@require_admin
def import_pricing_route():
    upload = request.files.get("file")
    if not upload:
        return jsonify({"error": "file is required"}), 400

    try:
        rows = import_service.parse_pricing_workbook(upload.read())
    except ImportFileError as e:
        return jsonify({"error": str(e)}), 400

    errors = import_service.validate_pricing(rows)
    if errors:
        return jsonify({"error": "Validation failed", "errors": errors, "rows": len(rows)}), 400
    if request.args.get("validate_only", "false").lower() == "true":
        return jsonify({"rows": len(rows), "errors": []})

    return jsonify(import_service.import_pricing(rows)), 200


@pricing_bp.get("/export")
@require_auth
@require_admin
def export_pricing_route():
    return send_file(
        BytesIO(import_service.export_pricing_workbook()),
        mimetype=XLSX_MIMETYPE,
        as_attachment=True,
        download_name="license_pricing.xlsx",
    )
