"""Seed the permission catalogue."""

from sqlalchemy.orm import Session
from rbac_console.authz.permissions import PERMISSION_CATALOGUE
from rbac_console.models.permission import Permission


def seed_permissions(db: Session) -> None:
    """Insert catalogue permissions that don't already exist, parents first."""
    by_name = {p.name: p for p in db.query(Permission).all()}
    created = 0
    for name, parent_name in PERMISSION_CATALOGUE:
        if name in by_name:
            continue
        parent = by_name.get(parent_name) if parent_name else None
        permission = Permission(name=name, parent_id=parent.id if parent else None)
        db.add(permission)
        db.flush()
        by_name[name] = permission
        created += 1

    db.commit()
    print(f"✅ Seeded {created} permission(s), {len(by_name)} total")
