from __future__ import annotations

from sqlalchemy.orm import declared_attr

from ..extensions import db
from dealdesk.time_utils import to_utc_z, utcnow


class DocumentMixin:
    """
    Shared shape of every attachment table.

    Subclasses set BUCKET (object storage bucket), OWNER_FIELD (the foreign
    key column naming the owning row), ALLOWED_EXTENSIONS and MAX_BYTES_SETTING
    (the config key holding the per-file size ceiling). ``pending_deletion`` is the soft-delete
    flag: marked rows stay until the owner is saved.
    """
    BUCKET: str = ""
    OWNER_FIELD: str = ""
    ALLOWED_EXTENSIONS: tuple[str, ...] = ()
    MAX_BYTES_SETTING: str = "UPLOAD_MAX_BYTES"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    file_path = db.Column(db.String(1024), nullable=False)
    file_type = db.Column(db.String(128), nullable=True)
    file_size = db.Column(db.Integer, nullable=False, default=0)
    pending_deletion = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    @declared_attr
    def uploaded_by(cls):
        return db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    @property
    def owner_id(self) -> int:
        return getattr(self, self.OWNER_FIELD)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            self.OWNER_FIELD: self.owner_id,
            "bucket": self.BUCKET,
            "name": self.name,
            "file_path": self.file_path,
            "file_type": self.file_type,
            "file_size": self.file_size,
            "uploaded_by": self.uploaded_by,
            "pending_deletion": self.pending_deletion,
            "created_at": to_utc_z(self.created_at),
        }
