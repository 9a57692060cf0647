"""
Role, role-module grant and audit log models.

Permissions themselves are not stored: the permission catalog is compiled
configuration (see catalog.py). What lives in the database is:
- System roles (school_id NULL) that users are assigned to
- Role-module grants: a role may use a module inside a given school
- Audit log entries for module lifecycle changes
"""
from typing import Any, Dict
from sqlalchemy import String, ForeignKey, JSON, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class Role(Base, TimestampMixin):
    """
    Role model.

    System roles (SUPERADMIN, SCHOOL_ADMIN, TEACHER, PARENT, STUDENT) have no
    school. The role name is what the permission catalog is keyed on.
    """
    __tablename__ = "roles"
    __table_args__ = (UniqueConstraint("name", "school_id", name="uq_roles_name_school"),)

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    name: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # null = system-wide role
    school_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("schools.id", ondelete="CASCADE"),
        nullable=True,
        index=True
    )

    def __repr__(self) -> str:
        return f"<Role(id={self.id}, name={self.name!r}, school_id={self.school_id})>"


class RoleModuleGrant(Base, TimestampMixin):
    """
    Authorizes a role to use a module inside one school.

    Created when the module is enabled for the school and never removed when
    it is disabled: the activation flag alone gates access.
    """
    __tablename__ = "role_module_schools"
    __table_args__ = (
        UniqueConstraint("role_id", "school_id", "module_id", name="uq_role_module_school"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    role_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    school_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True
    )
    module_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("modules.id", ondelete="CASCADE"), nullable=False, index=True
    )

    def __repr__(self) -> str:
        return f"<RoleModuleGrant(role_id={self.role_id}, school_id={self.school_id}, module_id={self.module_id})>"


class AuditLog(Base, TimestampMixin):
    """
    Audit log for access-control changes.

    Tracks who did what, when, and from where.
    """
    __tablename__ = "audit_logs"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    user_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_id: Mapped[str | None] = mapped_column(String(26), nullable=True, index=True)

    school_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("schools.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    details: Mapped[Dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, user_id={self.user_id}, action={self.action}, resource={self.resource_type})>"
