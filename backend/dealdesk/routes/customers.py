# Overview: Flask API routes for customer operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth
from ..models import Customer
from ..services import masterdata_service
from ..services.gateway import get_row
from ..validation import ConflictError, NotFoundError, ValidationError


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
def list_customers_route():
    customers = masterdata_service.list_customers(search=request.args.get("search"))
    return jsonify({"items": [c.to_dict() for c in customers], "count": len(customers)})


@customers_bp.get("/<int:customer_id>")
@require_auth
def get_customer_route(customer_id: int):
    try:
        return jsonify(get_row(Customer, customer_id, label="Customer").to_dict())
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@customers_bp.post("")
@require_auth
def create_customer_route():
    data = request.get_json(silent=True) or {}
    try:
        customer = masterdata_service.create_customer(data)
        return jsonify(customer.to_dict()), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.put("/<int:customer_id>")
@require_auth
def update_customer_route(customer_id: int):
    data = request.get_json(silent=True) or {}
    try:
        customer = masterdata_service.update_customer(customer_id, data)
        return jsonify(customer.to_dict())
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update customer %s", customer_id)
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.delete("/<int:customer_id>")
@require_auth
def delete_customer_route(customer_id: int):
    try:
        masterdata_service.delete_customer(customer_id)
        return jsonify({"message": "Customer deleted"})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
