"""CLI tools for CorpHub administration."""

import click

from corphub.db.enums import Role
from corphub.db.models import User
from corphub.db.session import SessionLocal
from corphub.services import company_service, provider_sync_service, user_service


@click.group()
def cli():
    """CorpHub CLI tools."""
    pass


@cli.command()
@click.option("--username", default="superadmin", show_default=True, help="Login name")
@click.option("--email", default="admin@corporatehierarchy.com", show_default=True, help="Email address")
@click.option("--first-name", default="Super", show_default=True)
@click.option("--last-name", default="Admin", show_default=True)
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
def create_super_admin(username: str, email: str, first_name: str, last_name: str, password: str):
    """
    Bootstrap the platform super admin.

    Registration cannot create super admins, so the first one comes from here.
    Does nothing when a super admin already exists.

    Example:
        python -m corphub.cli create-super-admin --username root --email root@example.com
    """
    db = SessionLocal()
    try:
        existing = db.query(User).filter(User.role == Role.SUPER_ADMIN.value).first()
        if existing:
            click.echo(f"Super admin already exists with username: {existing.username}")
            return

        user = user_service.create_user(
            db,
            username=username,
            password=password,
            email=email,
            first_name=first_name,
            last_name=last_name,
            role=Role.SUPER_ADMIN,
        )
        click.echo(f"✓ Created super admin: {user.username} (id {user.id})")
        click.echo("→ Change the password after the first login")

    except ValueError as e:
        db.rollback()
        click.echo(f"❌ {e}")
    finally:
        db.close()


@cli.command()
@click.option("--name", required=True, help="Company name")
@click.option("--description", default=None, help="Optional description")
def create_company(name: str, description: str | None):
    """Create a company."""
    db = SessionLocal()
    try:
        company = company_service.create_company(db, name=name.strip(), description=description)
        click.echo(f"✓ Created company: {company.name}")
        click.echo(f"  ID: {company.id}")
    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
        raise
    finally:
        db.close()


@cli.command()
def retry_provider_sync():
    """Re-queue Zoom sync for every user and meeting whose sync failed."""
    db = SessionLocal()
    try:
        count = provider_sync_service.requeue_failed(db)
        if count:
            click.echo(f"✓ Re-queued {count} provider sync(s)")
        else:
            click.echo("✓ No failed provider syncs")
    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    cli()
