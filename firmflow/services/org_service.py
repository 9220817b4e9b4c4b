"""Organization service - tenant bootstrap and lookups."""

from sqlalchemy.orm import Session

from firmflow.core.clock import utc_now
from firmflow.db.models import Organization


def get_org_by_slug(db: Session, slug: str) -> Organization | None:
    """Get organization by slug."""
    return db.query(Organization).filter(Organization.slug == slug.lower()).first()


def create_org(db: Session, name: str, slug: str) -> Organization:
    """
    Create a new organization.

    Raises:
        IntegrityError: If slug already exists
    """
    org = Organization(name=name, slug=slug.lower(), created_at=utc_now())
    db.add(org)
    db.commit()
    db.refresh(org)
    return org
