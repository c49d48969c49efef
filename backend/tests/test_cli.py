"""
CLI tests via Flask's test runner.
"""

from io import BytesIO

from openpyxl import Workbook, load_workbook

from dealdesk.extensions import db
from dealdesk.models import User


def _write_users(path, rows):
    wb = Workbook()
    for row in rows:
        wb.active.append(row)
    wb.save(path)


def test_system_init_creates_admin_once(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["system", "init", "--email", "root@dealdesk.test"])
    assert result.exit_code == 0, result.output
    assert "PASS Created admin: root@dealdesk.test" in result.output
    assert db.session.query(User).filter_by(email="root@dealdesk.test").one().is_admin

    again = runner.invoke(args=["system", "init", "--email", "root@dealdesk.test"])
    assert "PASS Admin already exists" in again.output


def test_system_init_rejects_weak_password(app, db_session):
    result = app.test_cli_runner().invoke(args=["system", "init", "--password", "short"])
    assert result.exit_code != 0
    assert "Password validation failed" in result.output


def test_users_import_dry_run(app, db_session, tmp_path):
    path = tmp_path / "users.xlsx"
    _write_users(path, [["name", "email", "role"], ["Ann Lee", "ann@x.io", "CTO"]])

    result = app.test_cli_runner().invoke(args=["users", "import", str(path), "--dry-run"])

    assert result.exit_code == 0, result.output
    assert "PASS 1 row(s) valid" in result.output
    assert db.session.query(User).count() == 0


def test_users_import_and_export(app, db_session, tmp_path):
    path = tmp_path / "users.xlsx"
    _write_users(path, [["name", "email", "role"], ["Ann Lee", "ann@x.io", "CTO"], ["Bo Chen", "bo@x.io", "CFO"]])
    runner = app.test_cli_runner()

    result = runner.invoke(args=["users", "import", str(path)])
    assert result.exit_code == 0, result.output
    assert "PASS 2 imported, 0 failed" in result.output

    out = tmp_path / "export.xlsx"
    result = runner.invoke(args=["users", "export", str(out)])
    assert result.exit_code == 0, result.output
    rows = list(load_workbook(BytesIO(out.read_bytes())).active.iter_rows(values_only=True))
    assert [r[1] for r in rows[1:]] == ["ann@x.io", "bo@x.io"]


def test_users_import_validation_errors(app, db_session, tmp_path):
    path = tmp_path / "users.xlsx"
    _write_users(path, [["name", "email", "role"], ["Ann Lee", "ann@x.io", "Wizard"]])

    result = app.test_cli_runner().invoke(args=["users", "import", str(path)])

    assert result.exit_code != 0
    assert "FAIL Row 2: Invalid role" in result.output
    assert db.session.query(User).count() == 0
