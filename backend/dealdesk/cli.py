# Overview: Flask CLI command groups for bootstrap, user administration and price lists.

# backend/dealdesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--email admin@dealdesk.local]
#   Create tables (if missing) and a first admin account. Idempotent.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
# - python -m flask users create --name "Ada" --email ada@example.com --role "Sales Rep"
# - python -m flask users set-password ada@example.com
# - python -m flask users import users.xlsx [--dry-run]
# - python -m flask users export users.xlsx
#
# License pricing:
# - python -m flask pricing import pricing.xlsx [--dry-run]
# - python -m flask pricing export pricing.xlsx

from pathlib import Path

import click
from flask import current_app
from flask.cli import with_appcontext

from .constants import ADMIN_ROLE, ASSIGNABLE_ROLES
from .extensions import db
from .models import User
from .services import auth_service, import_service
from .services.auth_service import PasswordValidationError
from .services.import_service import ImportFileError
from .validation import ConflictError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--name', default='Administrator', help='Admin display name')
@click.option('--email', default='admin@dealdesk.local', help='Admin email')
@click.option('--password', default='Password123!', help='Admin password')
@with_appcontext
def init_system(name, email, password):
    """
    Create the schema and the first admin account.

    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing DealDesk...")
    db.create_all()

    existing = db.session.query(User).filter_by(email=email.lower()).first()
    if existing:
        click.echo(f"PASS Admin already exists: {existing.email} (ID: {existing.id})")
        return

    try:
        user = auth_service.create_user(name=name, email=email, role=ADMIN_ROLE, password=password)
    except PasswordValidationError as e:
        raise click.ClickException(f"Password validation failed: {e}")
    click.echo(f"PASS Created admin: {user.email} (ID: {user.id}, code {user.user_human_id})")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@with_appcontext
def list_users_cli():
    users = db.session.query(User).order_by(User.name.asc()).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 100)
    click.echo(f"{'ID':<5} {'Code':<11} {'Name':<25} {'Email':<35} {'Active':<8} {'Role'}")
    click.echo("=" * 100)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(
            f"{user.id:<5} {user.user_human_id:<11} {user.name:<25} {user.email:<35} {active_str:<8} {user.role}"
        )
    click.echo("=" * 100 + "\n")


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--role', type=click.Choice(ASSIGNABLE_ROLES), prompt=True, help='Role')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_user_cli(name, email, role, password):
    """
    Create a user.

    Password must meet strength requirements: 8+ characters with upper and
    lower case letters, a digit and a special character.
    """
    try:
        user = auth_service.create_user(name=name, email=email, role=role, password=password)
    except PasswordValidationError as e:
        raise click.ClickException(f"Password validation failed: {e}")
    except (ValidationError, ConflictError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created user: {user.name} ({user.email}) with role '{user.role}'")


@users_group.command('set-password')
@click.argument('email')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='New password')
@with_appcontext
def set_password_cli(email, password):
    user = db.session.query(User).filter_by(email=email.strip().lower()).first()
    if not user:
        raise click.ClickException(f"No user with email {email}")
    try:
        auth_service.set_password(user.id, password)
    except PasswordValidationError as e:
        raise click.ClickException(f"Password validation failed: {e}")
    click.echo(f"PASS Password updated for {user.email}; open sessions revoked")


def _run_import(path, parse, validate, run, dry_run):
    try:
        rows = parse(Path(path).read_bytes())
    except ImportFileError as e:
        raise click.ClickException(str(e))

    errors = validate(rows)
    if errors:
        for message in errors:
            click.echo(f"FAIL {message}")
        raise click.ClickException(f"{len(errors)} validation error(s); nothing imported")

    click.echo(f"PASS {len(rows)} row(s) valid")
    if dry_run:
        return

    with click.progressbar(length=100, label="Importing") as bar:
        state = {"shown": 0}

        def progress(percent):
            step = int(percent) - state["shown"]
            if step > 0:
                bar.update(step)
                state["shown"] += step

        result = run(rows, progress=progress)

    click.echo(f"PASS {result['successful']} imported, {result['failed']} failed")
    for message in result["errors"]:
        click.echo(f"FAIL {message}")


@users_group.command('import')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.option('--dry-run', is_flag=True, help='Validate only')
@with_appcontext
def import_users_cli(path, dry_run):
    """Import users from an .xlsx file with columns name, email, role."""
    click.echo(
        f"INFO Imported users get the default password from IMPORT_DEFAULT_PASSWORD "
        f"({'set' if current_app.config.get('IMPORT_DEFAULT_PASSWORD') else 'missing'})"
    )
    _run_import(
        path,
        import_service.parse_users_workbook,
        import_service.validate_users,
        import_service.import_users,
        dry_run,
    )


@users_group.command('export')
@click.argument('path', type=click.Path(dir_okay=False, writable=True))
@with_appcontext
def export_users_cli(path):
    Path(path).write_bytes(import_service.export_users_workbook())
    click.echo(f"PASS Users written to {path}")


@click.group('pricing')
def pricing_group():
    """License price list import/export."""


@pricing_group.command('import')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.option('--dry-run', is_flag=True, help='Validate only')
@with_appcontext
def import_pricing_cli(path, dry_run):
    """Import pricing from an .xlsx file with columns pretty_name, type, size, price."""
    _run_import(
        path,
        import_service.parse_pricing_workbook,
        import_service.validate_pricing,
        import_service.import_pricing,
        dry_run,
    )


@pricing_group.command('export')
@click.argument('path', type=click.Path(dir_okay=False, writable=True))
@with_appcontext
def export_pricing_cli(path):
    Path(path).write_bytes(import_service.export_pricing_workbook())
    click.echo(f"PASS License pricing written to {path}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(pricing_group)
