# Overview: Service-layer operations for spreadsheet import/export of users and license pricing.

"""
Spreadsheet Import / Export

Both imports follow the same three steps:
    parse_*_workbook   read the first sheet, check the header, collect rows
    validate_*         per-row checks, messages numbered like the sheet rows
    import_*           insert row by row; one bad row does not stop the rest

Header names are matched case-insensitively after trimming. Data rows missing
any required value are skipped without an error, so blank trailing rows in a
sheet do not count as failures.
"""

from __future__ import annotations

from io import BytesIO
from typing import Callable

from flask import current_app
from openpyxl import Workbook, load_workbook

from ..constants import USER_ROLES
from ..extensions import db
from ..models import CatalogService, LicensePricing, User
from ..validation import is_valid_email
from . import auth_service


class ImportFileError(ValueError):
    """Raised when a workbook cannot be read or lacks required columns."""


USER_COLUMNS = ("name", "email", "role")
PRICING_COLUMNS = ("pretty_name", "type", "size", "price")
SERVICE_COLUMNS = ("name", "category", "manday_rate")

ProgressCallback = Callable[[float], None]


def _read_sheet(data: bytes, required: tuple[str, ...]) -> list[dict]:
    try:
        wb = load_workbook(BytesIO(data), read_only=True, data_only=True)
    except Exception as exc:
        raise ImportFileError("Could not read spreadsheet. Upload an .xlsx file") from exc

    try:
        sheet = wb.worksheets[0]
        rows = list(sheet.iter_rows(values_only=True))
    finally:
        wb.close()

    if not rows:
        raise ImportFileError(f"Missing required columns: {', '.join(required)}")

    headers = [str(h).strip().lower() if h is not None else "" for h in rows[0]]
    missing = [col for col in required if col not in headers]
    if missing:
        raise ImportFileError(f"Missing required columns: {', '.join(missing)}")

    index = {col: headers.index(col) for col in required}
    records = []
    for row in rows[1:]:
        values = {}
        for col, idx in index.items():
            value = row[idx] if idx < len(row) else None
            if value is None or (isinstance(value, str) and not value.strip()):
                values = None
                break
            values[col] = value
        if values is not None:
            records.append(values)
    return records


def _report(progress: ProgressCallback | None, done: int, total: int) -> None:
    if progress is not None and total:
        progress(done / total * 100)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

def parse_users_workbook(data: bytes) -> list[dict]:
    return [
        {
            "name": str(r["name"]).strip(),
            "email": str(r["email"]).strip().lower(),
            "role": str(r["role"]).strip(),
        }
        for r in _read_sheet(data, USER_COLUMNS)
    ]


def validate_users(users: list[dict]) -> list[str]:
    errors: list[str] = []
    seen: set[str] = set()

    for index, user in enumerate(users):
        row_number = index + 2  # header is row 1

        if len(user["name"]) < 2:
            errors.append(f"Row {row_number}: Name must be at least 2 characters long")

        if not is_valid_email(user["email"]):
            errors.append(f"Row {row_number}: Invalid email format")
        elif user["email"] in seen:
            errors.append(f"Row {row_number}: Duplicate email address")
        seen.add(user["email"])

        if user["role"] not in USER_ROLES:
            errors.append(
                f"Row {row_number}: Invalid role. Must be one of: {', '.join(USER_ROLES)}"
            )

    return errors


def import_users(users: list[dict], progress: ProgressCallback | None = None) -> dict:
    """
    Create one account per row with the configured default password.

    Returns {"successful", "failed", "errors"}.
    """
    password = current_app.config["IMPORT_DEFAULT_PASSWORD"]
    results = {"successful": 0, "failed": 0, "errors": []}

    for i, user in enumerate(users):
        try:
            auth_service.create_user(
                name=user["name"],
                email=user["email"],
                role=user["role"],
                password=password,
            )
            results["successful"] += 1
        except Exception as exc:
            db.session.rollback()
            results["failed"] += 1
            results["errors"].append(f"Failed to import {user['email']}: {exc}")
        _report(progress, i + 1, len(users))

    current_app.logger.info(
        "User import finished: %d created, %d failed", results["successful"], results["failed"]
    )
    return results


def export_users_workbook() -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Users"
    ws.append(list(USER_COLUMNS))
    for user in db.session.query(User).order_by(User.name.asc()).all():
        ws.append([user.name, user.email, user.role])
    return _to_bytes(wb)


# ---------------------------------------------------------------------------
# License pricing
# ---------------------------------------------------------------------------

def _to_number(value):
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip().replace(",", ""))
    except ValueError:
        return None


def parse_pricing_workbook(data: bytes) -> list[dict]:
    return [
        {
            "pretty_name": str(r["pretty_name"]).strip(),
            "type": str(r["type"]).strip(),
            "size": str(r["size"]).strip(),
            "price": _to_number(r["price"]),
        }
        for r in _read_sheet(data, PRICING_COLUMNS)
    ]


def validate_pricing(items: list[dict]) -> list[str]:
    errors: list[str] = []
    for index, item in enumerate(items):
        row_number = index + 2
        if len(item["pretty_name"]) < 2:
            errors.append(f"Row {row_number}: Name must be at least 2 characters long")
        if item["price"] is None:
            errors.append(f"Row {row_number}: Price must be a number")
        if not item["type"]:
            errors.append(f"Row {row_number}: Type is required")
        if not item["size"]:
            errors.append(f"Row {row_number}: Size is required")
    return errors


def import_pricing(items: list[dict], progress: ProgressCallback | None = None) -> dict:
    results = {"successful": 0, "failed": 0, "errors": []}

    for i, item in enumerate(items):
        try:
            db.session.add(LicensePricing(
                pretty_name=item["pretty_name"],
                type=item["type"],
                size=item["size"],
                hourly_price=item["price"],
            ))
            db.session.commit()
            results["successful"] += 1
        except Exception as exc:
            db.session.rollback()
            results["failed"] += 1
            results["errors"].append(f"Failed to import {item['pretty_name']}: {exc}")
        _report(progress, i + 1, len(items))

    current_app.logger.info(
        "Pricing import finished: %d created, %d failed", results["successful"], results["failed"]
    )
    return results


def export_pricing_workbook() -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "License Pricing"
    ws.append(list(PRICING_COLUMNS))
    rows = db.session.query(LicensePricing).order_by(
        LicensePricing.pretty_name.asc(), LicensePricing.id.asc()
    ).all()
    for row in rows:
        ws.append([row.pretty_name, row.type, row.size, row.hourly_price])
    return _to_bytes(wb)


def export_services_workbook() -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Services"
    ws.append(list(SERVICE_COLUMNS))
    rows = db.session.query(CatalogService).order_by(
        CatalogService.name.asc(), CatalogService.id.asc()
    ).all()
    for row in rows:
        ws.append([row.name, row.category, row.manday_rate])
    return _to_bytes(wb)


def _to_bytes(wb: Workbook) -> bytes:
    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()
