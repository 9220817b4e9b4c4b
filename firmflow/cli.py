"""CLI tools for firm administration and workflow inspection."""

import json
from uuid import UUID

import click
from sqlalchemy.exc import IntegrityError

from firmflow.db.enums import Role
from firmflow.db.session import SessionLocal


@click.group()
def cli():
    """Firmflow CLI tools."""
    pass


@cli.command()
@click.option("--name", required=True, help="Organization name")
@click.option("--slug", required=True, help="URL-friendly slug (lowercase, no spaces)")
def create_org(name: str, slug: str):
    """
    Create an organization (tenant).

    Example:
        python -m firmflow.cli create-org --name "Acme & Co" --slug "acme"
    """
    from firmflow.services import org_service

    slug = slug.lower().strip()
    if not slug.replace("-", "").replace("_", "").isalnum():
        raise click.ClickException("Slug must be alphanumeric (with optional hyphens/underscores)")

    db = SessionLocal()
    try:
        if org_service.get_org_by_slug(db, slug):
            raise click.ClickException(f"Organization with slug '{slug}' already exists")
        org = org_service.create_org(db, name, slug)
        click.echo(f"✓ Created organization: {name}")
        click.echo(f"  ID: {org.id}")
        click.echo(f"  Slug: {org.slug}")
    finally:
        db.close()


@cli.command()
@click.option("--org-slug", required=True, help="Organization slug")
@click.option("--email", required=True, help="User email")
@click.option("--name", "display_name", required=True, help="Display name")
@click.option(
    "--role",
    required=True,
    type=click.Choice([r.value for r in Role if r != Role.CLIENT]),
    help="Role inside the organization",
)
def add_member(org_slug: str, email: str, display_name: str, role: str):
    """
    Add a staff member to an organization.

    Example:
        python -m firmflow.cli add-member --org-slug acme --email pm@acme.com --name "Priya" --role project_manager
    """
    from firmflow.services import org_service, user_service

    db = SessionLocal()
    try:
        org = org_service.get_org_by_slug(db, org_slug)
        if not org:
            raise click.ClickException(f"Organization not found: {org_slug}")
        try:
            membership = user_service.add_member(db, org.id, email, display_name, Role(role))
        except IntegrityError:
            db.rollback()
            raise click.ClickException(f"{email} is already a member of {org_slug}")
        click.echo(f"✓ Added {email} to {org_slug} as {role}")
        click.echo(f"  User ID: {membership.user_id}")
    finally:
        db.close()


@cli.command()
@click.option("--email", required=True, help="User email to revoke sessions for")
def revoke_sessions(email: str):
    """
    Revoke all sessions for a user by bumping their token_version.

    Example:
        python -m firmflow.cli revoke-sessions --email "user@example.com"
    """
    from firmflow.services import user_service

    db = SessionLocal()
    try:
        user = user_service.get_user_by_email(db, email)
        if not user:
            raise click.ClickException(f"User not found: {email}")
        old_version = user.token_version
        user_service.revoke_all_sessions(db, user.id)
        click.echo(f"✓ Revoked all sessions for {email}")
        click.echo(f"  Token version: {old_version} → {user.token_version}")
    finally:
        db.close()


@cli.command()
def describe_transitions():
    """Print the service transition table as JSON."""
    from firmflow.core.transition_rules import describe_transitions as describe

    click.echo(json.dumps(describe(), indent=2))


@cli.command()
@click.option("--service-id", required=True, type=click.UUID, help="Service ID")
def verify_history(service_id: UUID):
    """
    Replay a service's status history and check it against the transition table.

    Exits non-zero if the history is not a valid walk or disagrees with the
    stored status.
    """
    from firmflow.db.models import Service
    from firmflow.services import status_history_service
    from firmflow.services.workflow_errors import InvariantViolationError

    db = SessionLocal()
    try:
        service = db.get(Service, service_id)
        if not service:
            raise click.ClickException(f"Service not found: {service_id}")
        records = status_history_service.get_history(db, service.organization_id, service.id)
        try:
            replayed = status_history_service.verify_walk(records)
        except InvariantViolationError as e:
            raise click.ClickException(f"Invalid history: {e.message}")
        if replayed.value != service.status:
            raise click.ClickException(
                f"History replays to {replayed.value} but service is {service.status}"
            )
        if len(records) != service.version:
            raise click.ClickException(
                f"Service is at version {service.version} but has {len(records)} records"
            )
        click.echo(f"✓ {len(records)} records, status {replayed.value}, version {service.version}")
    finally:
        db.close()


if __name__ == "__main__":
    cli()
