"""Permission tree node model."""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from rbac_console.db.base import Base


class Permission(Base):
    """Named capability; parent_id links nodes into a forest."""
    __tablename__ = "permissions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False, index=True)
    parent_id = Column(Integer, ForeignKey("permissions.id"), nullable=True, index=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    role_links = relationship(
        "RolePermission",
        back_populates="permission",
        cascade="all",
    )
