# Overview: Service-layer operations for attachments; upload, download and deferred deletion.

"""
Attachment Manager

Files go to object storage first (upload_file returns their metadata) and the
owning workflow then records them as document rows inside its own unit of
work (create_document_rows). Removal is two-phase: a document is marked
pending_deletion, the mark can be undone, and the storage objects plus rows
are dropped inside the owner's save (drop_pending_documents), or on their
own (commit_pending_deletions). Each document type has its own bucket, size
ceiling and allowed extensions (see the document models); they are checked on
upload and again when a workflow records the metadata.
"""

from __future__ import annotations

import os
from typing import Iterable

from flask import current_app

from ..extensions import db, storage
from ..models import ContractDocument, OpportunityDocument, PartnerDocument, ReviewDocument
from ..validation import NotFoundError, ValidationError, format_file_size
from .gateway import commit_or_rollback, get_row
from dealdesk.time_utils import epoch_millis


DOCUMENT_MODELS = {
    "review": ReviewDocument,
    "contract": ContractDocument,
    "partner": PartnerDocument,
    "opportunity": OpportunityDocument,
}


def document_model(kind: str):
    try:
        return DOCUMENT_MODELS[kind]
    except KeyError:
        raise NotFoundError(f"Unknown document type '{kind}'")


def max_bytes_for(model) -> int:
    return current_app.config[model.MAX_BYTES_SETTING]


def _clean_filename(filename: str) -> str:
    name = os.path.basename((filename or "").replace("\\", "/")).strip()
    if not name or name in (".", ".."):
        raise ValidationError("File name is required")
    return name


def check_file(
    filename: str,
    size: int,
    *,
    max_bytes: int,
    allowed_extensions: Iterable[str] | None = None,
) -> str:
    """Reject oversize files and unexpected extensions; returns the clean name."""
    name = _clean_filename(filename)
    if size > max_bytes:
        raise ValidationError(
            f"File {name} is too large. Maximum size is {format_file_size(max_bytes)}"
        )
    if allowed_extensions:
        allowed = tuple(ext.lower() for ext in allowed_extensions)
        if not name.lower().endswith(allowed):
            raise ValidationError(
                f"File {name} has an unsupported type. Allowed: {', '.join(allowed)}"
            )
    return name


def upload_file(
    bucket: str,
    folder_path: str,
    filename: str,
    data: bytes,
    content_type: str | None = None,
    *,
    max_bytes: int | None = None,
    allowed_extensions: Iterable[str] | None = None,
) -> dict:
    """
    Store one file and return {name, path, type, size}.

    Validation happens before the storage call, so a rejected file never
    reaches the bucket.
    """
    if max_bytes is None:
        max_bytes = current_app.config["UPLOAD_MAX_BYTES"]
    data = data or b""
    name = check_file(filename, len(data), max_bytes=max_bytes, allowed_extensions=allowed_extensions)

    folder = (folder_path or "").strip().strip("/")
    object_name = f"{epoch_millis()}-{name}"
    path = f"{folder}/{object_name}" if folder else object_name

    storage.upload(bucket, path, data, content_type)
    current_app.logger.info("Stored %s (%d bytes) in %s", path, len(data), bucket)

    return {
        "name": name,
        "path": path,
        "type": content_type,
        "size": len(data),
    }


def upload_document(kind: str, folder_path: str, filename: str, data: bytes, content_type: str | None = None) -> dict:
    """Upload with the bucket, size ceiling and allowed extensions of one document type."""
    model = document_model(kind)
    return upload_file(
        model.BUCKET,
        folder_path,
        filename,
        data,
        content_type,
        max_bytes=max_bytes_for(model),
        allowed_extensions=model.ALLOWED_EXTENSIONS,
    )


def normalize_documents(files, model) -> list[dict]:
    """
    Check the metadata a client sends back after uploading.

    Accepts a list of {name, path, type?, size?} dicts. Both the display name
    and the stored object name must carry an extension ``model`` accepts, and
    the reported size must fit its ceiling.
    """
    if files is None:
        return []
    if not isinstance(files, list):
        raise ValidationError("documents must be a list")
    max_bytes = max_bytes_for(model)
    uploads = []
    for item in files:
        if not isinstance(item, dict):
            raise ValidationError("documents must contain objects")
        name = (item.get("name") or "").strip()
        path = (item.get("path") or "").strip()
        if not name or not path:
            raise ValidationError("Each document needs a name and a path")
        size = item.get("size") or 0
        if isinstance(size, bool) or not isinstance(size, int) or size < 0:
            raise ValidationError("Document size must be a non-negative integer")
        check_file(name, size, max_bytes=max_bytes, allowed_extensions=model.ALLOWED_EXTENSIONS)
        check_file(path, 0, max_bytes=max_bytes, allowed_extensions=model.ALLOWED_EXTENSIONS)
        uploads.append({"name": name, "path": path, "type": item.get("type"), "size": size})
    return uploads


def create_document_rows(model, owner_id: int, uploads: list[dict], *, uploaded_by: int | None) -> list:
    """Add document rows to the current session. The caller commits."""
    rows = []
    for upload in uploads:
        row = model(
            name=upload["name"],
            file_path=upload["path"],
            file_type=upload.get("type"),
            file_size=upload.get("size") or 0,
            uploaded_by=uploaded_by,
        )
        setattr(row, model.OWNER_FIELD, owner_id)
        db.session.add(row)
        rows.append(row)
    return rows


def download_document(bucket: str, path: str) -> bytes:
    """
    Fetch a stored object. Not retried: a missing object raises
    ObjectNotFoundError, any other failure StorageError.
    """
    return storage.download(bucket, path)


def set_pending_deletion(model, document_id: int, pending: bool):
    doc = get_row(model, document_id, label="Document")
    doc.pending_deletion = pending
    commit_or_rollback()
    return doc


def mark_for_deletion(model, document_id: int):
    return set_pending_deletion(model, document_id, True)


def unmark_for_deletion(model, document_id: int):
    return set_pending_deletion(model, document_id, False)


def drop_pending_documents(model, owner_id: int) -> int:
    """
    Remove the storage objects of every marked document of one owner and
    delete their rows from the session. The caller commits.

    A storage failure raises before any row is deleted.
    """
    owner_col = getattr(model, model.OWNER_FIELD)
    docs = (
        db.session.query(model)
        .filter(owner_col == owner_id, model.pending_deletion.is_(True))
        .all()
    )
    if not docs:
        return 0

    storage.remove(model.BUCKET, [d.file_path for d in docs])
    for doc in docs:
        db.session.delete(doc)

    current_app.logger.info(
        "Removed %d %s document(s) for owner %s", len(docs), model.__tablename__, owner_id
    )
    return len(docs)


def commit_pending_deletions(model, owner_id: int) -> int:
    """
    Drop every marked document of one owner: storage objects first, then rows.

    A storage failure raises before any row is touched, so the call can simply
    be repeated. Returns the number of documents removed.
    """
    try:
        removed = drop_pending_documents(model, owner_id)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return removed
