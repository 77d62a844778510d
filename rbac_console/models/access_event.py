"""Access event model."""

from sqlalchemy import Column, Integer, String, Text, DateTime, func
from rbac_console.db.base import Base


class AccessEvent(Base):
    """A sign-in, an impersonation, or a change to who may do what.

    Rows are written once and never edited. ``granted``/``revoked`` hold JSON
    lists of the names added to or taken from the target: permission names
    for a role, role names for a user, the parent node for a permission.
    """
    __tablename__ = "access_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    occurred_at = Column(DateTime, server_default=func.now(), nullable=False, index=True)
    event = Column(String(40), nullable=False, index=True)  # e.g. "role.updated"
    actor_id = Column(Integer, nullable=True, index=True)
    actor_name = Column(String(100), nullable=True)
    impersonator_id = Column(Integer, nullable=True)
    target_type = Column(String(20), nullable=False, index=True)  # user, role, permission
    target_id = Column(Integer, nullable=True)
    target_name = Column(String(100), nullable=True, index=True)
    granted = Column(Text, nullable=True)
    revoked = Column(Text, nullable=True)
