# Overview: Service-layer operations for user administration and reviewer pickers.

from __future__ import annotations

from sqlalchemy import or_

from ..constants import ASSIGNABLE_ROLES
from ..extensions import db
from ..models import User
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    is_valid_email,
    validate_payload,
)
from . import auth_service, session_service
from .gateway import get_row, list_rows, update_row


USER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "role", "is_active"},
    required_on_create={"name", "email", "role"},
    choices={"role": ASSIGNABLE_ROLES},
)


def list_users(*, search: str | None = None, role: str | None = None, include_inactive: bool = True) -> list[User]:
    filters = {"role": role}
    if not include_inactive:
        filters["is_active"] = True
    return list_rows(
        User,
        filters=filters,
        search=search,
        search_fields=("name", "email", "role", "user_human_id"),
        order_by=(User.name.asc(), User.id.asc()),
    )


def user_options(query: str | None = None, *, limit: int = 50) -> list[dict]:
    """
    Reviewer / owner picker: active users as {id, name, role}, sorted by
    name, filtered case-insensitively on name or role.
    """
    q = db.session.query(User).filter(User.is_active.is_(True))
    term = (query or "").strip()
    if term:
        pattern = f"%{term}%"
        q = q.filter(or_(User.name.ilike(pattern), User.role.ilike(pattern)))
    users = q.order_by(User.name.asc(), User.id.asc()).limit(limit).all()
    return [u.to_option() for u in users]


def create_user(payload: dict, *, password: str) -> User:
    data = validate_payload(model=User, payload=payload, policy=USER_POLICY, partial=False)
    return auth_service.create_user(
        name=data["name"],
        email=data["email"],
        role=data["role"],
        password=password,
    )


def update_user(user_id: int, payload: dict) -> User:
    user = get_row(User, user_id, label="User")
    data = validate_payload(model=User, payload=payload, policy=USER_POLICY, partial=True)

    if "email" in data:
        data["email"] = data["email"].lower()
        if not is_valid_email(data["email"]):
            raise ValidationError("Invalid email format")
        clash = (
            db.session.query(User.id)
            .filter(User.email == data["email"], User.id != user.id)
            .first()
        )
        if clash:
            raise ConflictError("Email already exists")

    deactivating = data.get("is_active") is False and user.is_active
    update_row(user, data)
    if deactivating:
        session_service.revoke_all_user_sessions(user.id, reason="User account deactivated")
    return user


def deactivate_user(user_id: int, *, actor_id: int) -> None:
    """
    Accounts are never hard-deleted: reviews, history and contracts keep
    pointing at them.
    """
    user = get_row(User, user_id, label="User")
    if user.id == actor_id:
        raise ValidationError("You cannot deactivate your own account")
    session_service.revoke_all_user_sessions(user.id, reason="User account deactivated")
    update_row(user, {"is_active": False})
