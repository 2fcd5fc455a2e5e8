from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.apex.models import Base, JSONType


class Employee(Base):
    __tablename__ = "employees"
    __table_args__ = (
        Index("idx_employees_role", "role"),
        Index("idx_employees_last_first", "last_name", "first_name"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    first_name: Mapped[str] = mapped_column(String(128), nullable=False)
    last_name: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    phone_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    work_ext: Mapped[int | None] = mapped_column(Integer, nullable=True)
    job_title: Mapped[str | None] = mapped_column(String(255), nullable=True)

    role: Mapped[str] = mapped_column(String(64), nullable=False)  # company role, e.g. "Lead", "Technical Team"
    application_role: Mapped[str] = mapped_column(String(64), nullable=False, default="technical_team")
    manager_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    status: Mapped[str | None] = mapped_column(String(64), nullable=True)  # Active, On Leave, Other
    location: Mapped[str | None] = mapped_column(String(64), nullable=True)

    skills: Mapped[list | None] = mapped_column(JSONType, nullable=True, default=list)
    certificates: Mapped[list | None] = mapped_column(JSONType, nullable=True, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    technical_profile: Mapped["TechnicalProfile | None"] = relationship(
        "TechnicalProfile",
        back_populates="employee",
        cascade="all, delete-orphan",
        uselist=False,
        lazy="selectin",
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class TechnicalProfile(Base):
    __tablename__ = "technical_profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, unique=True
    )

    team: Mapped[str | None] = mapped_column(String(64), nullable=True)  # Delivery, Managed Services
    grade: Mapped[str | None] = mapped_column(String(8), nullable=True)  # G1..G15
    level: Mapped[str | None] = mapped_column(String(64), nullable=True)  # derived from grade
    years_of_experience: Mapped[float | None] = mapped_column(Float, nullable=True)

    skills: Mapped[list | None] = mapped_column(JSONType, nullable=True, default=list)
    certificates: Mapped[list | None] = mapped_column(JSONType, nullable=True, default=list)
    fields_covered: Mapped[list | None] = mapped_column(JSONType, nullable=True, default=list)
    technical_development_plan: Mapped[list | None] = mapped_column(JSONType, nullable=True, default=list)

    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    employee: Mapped[Employee] = relationship("Employee", back_populates="technical_profile")
