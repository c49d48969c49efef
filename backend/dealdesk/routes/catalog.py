# Overview: Flask API routes for the services catalog offered in service sets.

"""
Services Catalog Routes

Everyone signed in can browse the catalog (offer service lines pick from it);
creating, editing, deleting and exporting entries is admin-only.
"""

from io import BytesIO

from flask import Blueprint, request, jsonify, current_app, send_file

from ..decorators import require_auth, require_admin
from ..models import CatalogService
from ..services import import_service, masterdata_service
from ..services.gateway import get_row
from ..validation import ConflictError, NotFoundError, ValidationError
from .users import XLSX_MIMETYPE


catalog_bp = Blueprint("catalog", __name__, url_prefix="/api/services")


@catalog_bp.get("")
@require_auth
def list_services_route():
    rows = masterdata_service.list_services(
        search=request.args.get("search"),
        category=request.args.get("category"),
    )
    return jsonify({"items": [r.to_dict() for r in rows], "count": len(rows)})


@catalog_bp.get("/<int:service_id>")
@require_auth
def get_service_route(service_id: int):
    try:
        return jsonify(get_row(CatalogService, service_id, label="Service").to_dict())
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@catalog_bp.post("")
@require_auth
@require_admin
def create_service_route():
    data = request.get_json(silent=True) or {}
    try:
        row = masterdata_service.create_service(data)
        return jsonify(row.to_dict()), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create service")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.put("/<int:service_id>")
@require_auth
@require_admin
def update_service_route(service_id: int):
    data = request.get_json(silent=True) or {}
    try:
        row = masterdata_service.update_service(service_id, data)
        return jsonify(row.to_dict())
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400


@catalog_bp.delete("/<int:service_id>")
@require_auth
@require_admin
def delete_service_route(service_id: int):
    try:
        masterdata_service.delete_service(service_id)
        return jsonify({"message": "Service deleted"})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409


@catalog_bp.get("/export")
@require_auth
@require_admin
def export_services_route():
    return send_file(
        BytesIO(import_service.export_services_workbook()),
        mimetype=XLSX_MIMETYPE,
        as_attachment=True,
        download_name="services.xlsx",
    )
