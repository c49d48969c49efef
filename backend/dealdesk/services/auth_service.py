# Overview: Service-layer operations for auth; password hashing, login, user creation.

"""
Authentication Service

Every action in the back office is attributed to a user. Passwords are hashed
with bcrypt; session tokens are handled separately (see session_service.py).

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, upper + lower case, digit and special character
- Email addresses are stored lower-cased and are unique
"""

import re
import secrets
import string

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User
from ..constants import ASSIGNABLE_ROLES, CODE_PREFIX_USER
from ..validation import ConflictError, ValidationError, is_valid_email, require_choice, require_text
from . import session_service
from .concurrency import run_session_check
from dealdesk.time_utils import utcnow


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


class AuthenticationError(Exception):
    """Raised when credentials are rejected."""
    pass


_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_human_id(prefix: str, length: int = 6) -> str:
    """Short display code such as "CNT7Q2K9X"; not a key, just for humans."""
    return prefix + "".join(secrets.choice(_CODE_ALPHABET) for _ in range(length))


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt (cost factor from BCRYPT_ROUNDS, default 12).

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check; malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(
    *,
    name: str,
    email: str,
    role: str,
    password: str,
    commit: bool = True,
) -> User:
    """
    Create a user with a fresh USR code.

    Raises:
        ValidationError: missing name, malformed email, unknown role
        PasswordValidationError: weak password
        ConflictError: email already registered
    """
    name = require_text(name, "name")
    email = require_text(email, "email").lower()
    if not is_valid_email(email):
        raise ValidationError("Invalid email format")
    require_choice(role, ASSIGNABLE_ROLES, "role")

    existing = db.session.query(User).filter_by(email=email).first()
    if existing:
        raise ConflictError("Email already exists")

    user = User(
        user_human_id=generate_human_id(CODE_PREFIX_USER),
        name=name,
        email=email,
        role=role,
        password_hash=hash_password(password),
        is_active=True,
    )
    db.session.add(user)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Return the active user matching the credentials, or None.
    """
    email = (email or "").strip().lower()
    user = run_session_check(
        lambda: db.session.query(User).filter_by(email=email).first()
    )
    if not user or not user.is_active:
        return None
    if not verify_password(password or "", user.password_hash):
        return None
    return user


def login(email: str, password: str, *, user_agent: str | None = None, ip_address: str | None = None):
    """
    Sign in: authenticate, stamp last login, open a session.

    Returns (user, session, plaintext_token). A failure to stamp the last
    login time is logged and does not fail the login.
    """
    user = authenticate(email, password)
    if user is None:
        raise AuthenticationError("Invalid credentials")

    try:
        user.last_login_at = utcnow()
        db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update last login for user %s", user.id)

    session, token = session_service.create_session(
        user.id, user_agent=user_agent, ip_address=ip_address
    )
    return user, session, token


def change_password(user: User, current_password: str, new_password: str) -> None:
    if not verify_password(current_password or "", user.password_hash):
        raise AuthenticationError("Current password is incorrect")
    user.password_hash = hash_password(new_password)
    user.updated_at = utcnow()
    db.session.commit()


def set_password(user_id: int, new_password: str) -> User:
    """
    Privileged reset (admin screens, CLI). Revokes the user's open sessions.
    """
    user = db.session.get(User, user_id)
    if not user:
        raise ValueError("User not found")
    user.password_hash = hash_password(new_password)
    user.updated_at = utcnow()
    db.session.commit()
    session_service.revoke_all_user_sessions(user.id, reason="Password reset")
    return user
