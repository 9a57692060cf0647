"""
School (tenant) and student models.

Schools are the tenants that activate feature modules. Students are the
records that own-scope permissions are checked against: a student user owns
its own student row, a parent user is linked to one or more student rows.
"""
from sqlalchemy import String, ForeignKey, Boolean
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin, generate_ulid


class School(Base, TimestampMixin):
    """
    Tenant owning users, students and module activations.
    """
    __tablename__ = "schools"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    students: Mapped[list["Student"]] = relationship(
        "Student",
        back_populates="school",
        cascade="all, delete-orphan",
        lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<School(id={self.id}, name={self.name!r})>"


class Student(Base, TimestampMixin):
    __tablename__ = "students"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    school_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("schools.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Login account of the student, when the student has one
    user_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
        index=True
    )

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)

    school: Mapped["School"] = relationship("School", back_populates="students", lazy="selectin")

    def __repr__(self) -> str:
        return f"<Student(id={self.id}, school_id={self.school_id})>"
