"""CLI tools for Gatehouse administration."""

from uuid import UUID

import click
from sqlalchemy.exc import SQLAlchemyError

from gatehouse.core.errors import GatehouseError
from gatehouse.core.structured_logging import configure_logging
from gatehouse.db.enums import Role
from gatehouse.db.session import SessionLocal


@click.group()
def cli():
    """Gatehouse CLI tools."""
    configure_logging()


def _fail(db, error: Exception) -> None:
    db.rollback()
    click.echo(f"❌ Error: {error}")
    raise SystemExit(1)


@cli.command()
@click.option("--email", required=True, help="Account email (created if missing)")
@click.option("--role", "role_name", required=True, type=click.Choice([r.value for r in Role]))
@click.option("--community-id", default=None, help="Community UUID for new accounts")
@click.option("--name", default=None, help="Display name for new accounts")
def grant_role(email: str, role_name: str, community_id: str | None, name: str | None):
    """
    Grant a role directly, bypassing the request workflow.

    This is the bootstrap command for the first administrator; the grant
    is still written to the audit trail (actor = system).

    Example:
        python -m gatehouse.cli grant-role --email "admin@example.com" --role state_admin
    """
    from gatehouse.services import account_service

    db = SessionLocal()
    try:
        account = account_service.bootstrap_role(
            db,
            email,
            Role(role_name),
            display_name=name,
            community_id=UUID(community_id) if community_id else None,
        )
        click.echo(f"✓ Granted {role_name} to {account.email}")
        click.echo(f"  Account ID: {account.id}")
    except (GatehouseError, SQLAlchemyError, ValueError) as e:
        _fail(db, e)
    finally:
        db.close()


@cli.command()
@click.option("--community-id", required=True, help="Community UUID")
@click.option("--module", "modules", multiple=True, required=True, help="Module key (repeatable)")
@click.option("--disable", is_flag=True, help="Disable instead of enable")
@click.option("--actor-email", required=True, help="Administrator performing the change")
def set_modules(community_id: str, modules: tuple[str, ...], disable: bool, actor_email: str):
    """
    Enable or disable community modules.

    Example:
        python -m gatehouse.cli set-modules --community-id <uuid> --module security --actor-email admin@example.com
    """
    from gatehouse.services import account_service, module_service

    db = SessionLocal()
    try:
        actor = account_service.get_account_by_email(db, actor_email)
        if actor is None:
            click.echo(f"❌ Account not found: {actor_email}")
            raise SystemExit(1)
        for module in modules:
            result = module_service.set_module_enabled(db, actor, UUID(community_id), module, not disable)
            click.echo(f"✓ {module}: {'disabled' if disable else 'enabled'}")
            if result.revoked_assignments:
                click.echo(f"  Revoked {result.revoked_assignments} role assignment(s)")
    except (GatehouseError, SQLAlchemyError, ValueError) as e:
        _fail(db, e)
    finally:
        db.close()


@cli.command()
def sweep_expired_access():
    """
    Deactivate guest roles whose access has expired.

    Safe to run from cron; authorization already treats expired guests
    as level 0, this only updates stored state.
    """
    from gatehouse.services import account_service

    db = SessionLocal()
    try:
        count = account_service.expire_guest_access(db)
        click.echo(f"✓ Expired guest access for {count} account(s)")
    except SQLAlchemyError as e:
        _fail(db, e)
    finally:
        db.close()


@cli.command()
def repair_households():
    """Backfill missing unit/community on active tenant delegates from their primary."""
    from gatehouse.services import household_service

    db = SessionLocal()
    try:
        count = household_service.repair_household_scoping(db)
        click.echo(f"✓ Repaired {count} household account(s)")
    except SQLAlchemyError as e:
        _fail(db, e)
    finally:
        db.close()


@cli.command()
@click.option("--email", required=True, help="Account email to revoke sessions for")
def revoke_sessions(email: str):
    """
    Revoke all sessions for an account by bumping its token_version.

    Example:
        python -m gatehouse.cli revoke-sessions --email "user@example.com"
    """
    from gatehouse.services import account_service

    db = SessionLocal()
    try:
        account = account_service.get_account_by_email(db, email)
        if not account:
            click.echo(f"❌ Account not found: {email}")
            raise SystemExit(1)

        old_version = account.token_version
        account.token_version += 1
        db.commit()

        click.echo(f"✓ Revoked all sessions for {email}")
        click.echo(f"  Token version: {old_version} → {account.token_version}")
    except SQLAlchemyError as e:
        _fail(db, e)
    finally:
        db.close()


@cli.command()
def verify_audit():
    """Recompute the audit hash chain and report the first broken entry."""
    from gatehouse.services import audit_service

    db = SessionLocal()
    try:
        valid, broken_id = audit_service.verify_chain(db)
    finally:
        db.close()
    if valid:
        click.echo("✓ Audit chain intact")
    else:
        click.echo(f"❌ Audit chain broken at entry {broken_id}")
        raise SystemExit(1)


if __name__ == "__main__":
    cli()
