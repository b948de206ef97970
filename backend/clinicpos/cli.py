# Overview: Flask CLI command groups for clinic bootstrap and inspection.

# backend/clinicpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py.
# - Use: python -m flask <group> <command> [options]
#
# Tenants (clinics):
# - python -m flask tenants create --name "Happy Paws" --code HP --tax-rate-bps 750 [--allow-oversell]
#   Create a clinic and its numbering sequences.
# - python -m flask tenants list
#
# Users:
# - python -m flask users create --tenant-id 1 --username ada --role Receptionist
#
# Sessions:
# - python -m flask sessions issue --tenant-id 1 --username ada [--ttl-hours 8]
#   Print a bearer token for the API (login itself is handled upstream).
# - python -m flask sessions revoke --token <token>
#
# Numbering:
# - python -m flask numbering show --tenant-id 1

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Tenant, User
from .permissions import ROLES, ROLE_RECEPTIONIST
from .services.auth_service import create_user
from .services.numbering_service import get_sequences, format_number
from .services.session_service import create_session, revoke_session
from .services.tenant_service import create_tenant, TenantAccessError


# =============================================================================
# TENANTS
# =============================================================================

@click.group('tenants')
def tenants_group():
    """Clinic (tenant) management commands."""


@tenants_group.command('list')
@with_appcontext
def list_tenants():
    """List all clinics."""
    tenants = db.session.query(Tenant).order_by(Tenant.id).all()

    if not tenants:
        click.echo("No tenants found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Code':<10} {'Active':<8} {'Tax bps':<8} {'Oversell':<9} {'Users'}")
    click.echo("="*80)

    for tenant in tenants:
        user_count = db.session.query(User).filter_by(tenant_id=tenant.id).count()
        active_str = "Yes" if tenant.is_active else "No"
        oversell_str = "Yes" if tenant.allow_oversell else "No"
        click.echo(
            f"{tenant.id:<5} {tenant.name:<30} {tenant.code or '-':<10} {active_str:<8} "
            f"{tenant.tax_rate_bps:<8} {oversell_str:<9} {user_count}"
        )

    click.echo("="*80 + "\n")


@tenants_group.command('create')
@click.option('--name', required=True, help='Clinic name')
@click.option('--code', default=None, help='Short code (unique)')
@click.option('--tax-rate-bps', type=int, default=0, show_default=True, help='Sales tax in basis points (500 = 5%)')
@click.option('--currency', default='NGN', show_default=True)
@click.option('--allow-oversell/--no-allow-oversell', default=False, show_default=True,
              help='Let sales drive stock below zero when the cashier confirms')
@with_appcontext
def create_tenant_cli(name, code, tax_rate_bps, currency, allow_oversell):
    """Create a clinic with default numbering patterns."""
    try:
        tenant = create_tenant(
            name,
            code,
            tax_rate_bps=tax_rate_bps,
            currency=currency,
            allow_oversell=allow_oversell,
        )
    except ValueError as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created tenant: {tenant.name} (ID: {tenant.id}, Code: {tenant.code or '-'})")


# =============================================================================
# USERS
# =============================================================================

@click.group('users')
def users_group():
    """Staff user commands."""


@users_group.command('create')
@click.option('--tenant-id', type=int, required=True)
@click.option('--username', required=True)
@click.option('--display-name', default=None)
@click.option('--email', default=None)
@click.option('--role', type=click.Choice(ROLES), default=ROLE_RECEPTIONIST, show_default=True)
@with_appcontext
def create_user_cli(tenant_id, username, display_name, email, role):
    """Create a staff user in a clinic."""
    try:
        user = create_user(tenant_id, username, display_name=display_name, role=role, email=email)
    except (ValueError, TenantAccessError) as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created user: {user.username} (ID: {user.id}) with role '{user.role}'")


# =============================================================================
# SESSIONS
# =============================================================================

@click.group('sessions')
def sessions_group():
    """Bearer session commands."""


@sessions_group.command('issue')
@click.option('--tenant-id', type=int, required=True)
@click.option('--username', required=True)
@click.option('--ttl-hours', type=int, default=None, help='Defaults to SESSION_TTL_HOURS')
@with_appcontext
def issue_session_cli(tenant_id, username, ttl_hours):
    """Issue a bearer token for a user."""
    user = db.session.query(User).filter_by(tenant_id=tenant_id, username=username).first()
    if not user:
        click.echo(f"FAIL User '{username}' not found in tenant {tenant_id}")
        return

    try:
        session, token = create_session(user.id, ttl_hours=ttl_hours)
    except ValueError as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Session {session.id} for {user.username}, expires {session.expires_at.isoformat()}Z")
    click.echo(token)


@sessions_group.command('revoke')
@click.option('--token', required=True, help='Plaintext bearer token')
@click.option('--reason', default='Revoked by administrator', show_default=True)
@with_appcontext
def revoke_session_cli(token, reason):
    """Revoke a bearer token."""
    if revoke_session(token, reason):
        click.echo("PASS Session revoked")
    else:
        click.echo("FAIL No active session for that token")


# =============================================================================
# NUMBERING
# =============================================================================

@click.group('numbering')
def numbering_group():
    """Numbering sequence inspection."""


@numbering_group.command('show')
@click.option('--tenant-id', type=int, required=True)
@with_appcontext
def show_numbering_cli(tenant_id):
    """Show each sequence's pattern, counter and next number."""
    if not db.session.query(Tenant).filter_by(id=tenant_id).first():
        click.echo(f"FAIL Tenant ID {tenant_id} not found")
        return

    click.echo(f"{'Kind':<10} {'Pattern':<24} {'Counter':<8} {'Next'}")
    for seq in get_sequences(tenant_id):
        click.echo(f"{seq.kind:<10} {seq.pattern:<24} {seq.counter:<8} {format_number(seq.pattern, seq.counter + 1)}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(tenants_group)
    app.cli.add_command(users_group)
    app.cli.add_command(sessions_group)
    app.cli.add_command(numbering_group)
