# Overview: Flask API routes for attachment upload, download and deletion marks.

"""
Attachment Routes

- POST /api/uploads/<kind>                       multipart "file" (+ "folder")
- GET  /api/documents/<kind>/<id>/download       stream the stored object
- POST /api/documents/<kind>/<id>/mark-deletion  soft-delete (undo with unmark-deletion)

<kind> is one of review, contract, partner, opportunity; it picks the bucket,
the size ceiling and the allowed extensions. Marked documents are
removed when the owner is saved (contract/partner/opportunity update, or
PUT /api/reviews/requests/<id>/documents).
"""

from io import BytesIO

from flask import Blueprint, request, jsonify, current_app, send_file

from ..decorators import require_auth
from ..services import attachment_service
from ..services.gateway import get_row
from ..storage import ObjectNotFoundError, StorageError
from ..validation import NotFoundError, ValidationError


uploads_bp = Blueprint("uploads", __name__, url_prefix="/api")


@uploads_bp.post("/uploads/<kind>")
@require_auth
def upload_route(kind: str):
    """
    Returns {name, path, type, size}; pass it back in the owning workflow's
    ``documents`` list.
    """
    upload = request.files.get("file")
    if not upload or not upload.filename:
        return jsonify({"error": "file is required"}), 400

    try:
        meta = attachment_service.upload_document(
            kind,
            request.form.get("folder", ""),
            upload.filename,
            upload.read(),
            upload.mimetype,
        )
        return jsonify(meta), 201
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except StorageError as e:
        current_app.logger.warning("Upload of %s document failed: %s", kind, e)
        return jsonify({"error": "Failed to upload file"}), 502


@uploads_bp.get("/documents/<kind>/<int:document_id>/download")
@require_auth
def download_document_route(kind: str, document_id: int):
    try:
        model = attachment_service.document_model(kind)
        doc = get_row(model, document_id, label="Document")
        data = attachment_service.download_document(model.BUCKET, doc.file_path)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ObjectNotFoundError:
        return jsonify({"error": "File not found in storage"}), 404
    except StorageError as e:
        current_app.logger.warning("Download of %s document %s failed: %s", kind, document_id, e)
        return jsonify({"error": "Failed to download file"}), 502

    return send_file(
        BytesIO(data),
        mimetype=doc.file_type or "application/octet-stream",
        as_attachment=True,
        download_name=doc.name,
    )


@uploads_bp.post("/documents/<kind>/<int:document_id>/mark-deletion")
@require_auth
def mark_document_route(kind: str, document_id: int):
    try:
        model = attachment_service.document_model(kind)
        doc = attachment_service.mark_for_deletion(model, document_id)
        return jsonify(doc.to_dict())
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@uploads_bp.post("/documents/<kind>/<int:document_id>/unmark-deletion")
@require_auth
def unmark_document_route(kind: str, document_id: int):
    try:
        model = attachment_service.document_model(kind)
        doc = attachment_service.unmark_for_deletion(model, document_id)
        return jsonify(doc.to_dict())
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
