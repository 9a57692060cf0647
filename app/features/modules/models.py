"""
Module catalog and per-school activation models.
"""
from sqlalchemy import String, ForeignKey, Boolean, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class Module(Base, TimestampMixin):
    """
    A licensable feature area. The key matches a ModuleKey value.
    """
    __tablename__ = "modules"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    key: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    display_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Catalog-level switch; inactive modules are hidden from school listings
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Module(id={self.id}, key={self.key!r})>"


class SchoolModule(Base, TimestampMixin):
    """
    Activation of a module for one school.
    """
    __tablename__ = "school_modules"
    __table_args__ = (UniqueConstraint("school_id", "module_id", name="uq_school_module"),)

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    school_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True
    )
    module_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("modules.id", ondelete="CASCADE"), nullable=False, index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<SchoolModule(school_id={self.school_id}, module_id={self.module_id}, active={self.is_active})>"
