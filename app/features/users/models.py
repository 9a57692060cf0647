"""
User model with ULID primary keys.
"""
from datetime import datetime
from sqlalchemy import String, Boolean, ForeignKey, Table, Column, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin, generate_ulid


# Users hold system roles (roles are tenant-independent rows)
user_roles = Table(
    "user_roles",
    Base.metadata,
    Column("user_id", String(26), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", String(26), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("assigned_at", DateTime(timezone=True), nullable=False, default=datetime.now),
)

# Parent-to-student links used by own-scope checks
user_students = Table(
    "user_students",
    Base.metadata,
    Column("user_id", String(26), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("student_id", String(26), ForeignKey("students.id", ondelete="CASCADE"), primary_key=True),
    Column("linked_at", DateTime(timezone=True), nullable=False, default=datetime.now),
)


class User(Base, TimestampMixin):
    """
    User model representing authenticated users.

    Every user belongs to exactly one school, which is the tenant all
    school- and own-scope permission checks are evaluated against.
    """
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    school_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("schools.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    last_login_at: Mapped[datetime | None] = mapped_column(nullable=True)

    roles: Mapped[list["Role"]] = relationship(  # type: ignore
        "Role",
        secondary=user_roles,
        lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email!r})>"
