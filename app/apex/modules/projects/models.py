from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.apex.constants import ENG_ROLE_ACCOUNT_MANAGER, ENG_ROLE_PROJECT_MANAGER, ENG_ROLE_TECHNICAL_LEAD
from app.apex.models import Base, JSONType

if TYPE_CHECKING:
    from app.apex.modules.customers.models import Customer
    from app.apex.modules.employees.models import Employee
    from app.apex.modules.pocs.models import Poc
    from app.apex.modules.tasks.models import ProjectTask


def _uuid_str() -> str:
    return str(uuid.uuid4())


class Project(Base):
    __tablename__ = "projects"
    __table_args__ = (
        Index("idx_projects_customer", "customer_id"),
        Index("idx_projects_updated_at", "updated_at"),
    )

    # engagement role -> column mirroring its active holder
    HOLDER_COLUMNS = {
        ENG_ROLE_TECHNICAL_LEAD: "technical_lead_id",
        ENG_ROLE_ACCOUNT_MANAGER: "account_manager_id",
        ENG_ROLE_PROJECT_MANAGER: "project_manager_id",
    }

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id", ondelete="RESTRICT"), nullable=False)
    source_poc_id: Mapped[int | None] = mapped_column(ForeignKey("pocs.id", ondelete="SET NULL"), nullable=True)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    technology: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_comment: Mapped[str | None] = mapped_column(Text, nullable=True)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Denormalized holders of the single-holder roles (mirrors the active assignments)
    account_manager_id: Mapped[int | None] = mapped_column(ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    technical_lead_id: Mapped[int | None] = mapped_column(ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    project_manager_id: Mapped[int | None] = mapped_column(ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)

    created_by_id: Mapped[int | None] = mapped_column(ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    customer: Mapped["Customer"] = relationship("Customer", lazy="selectin")
    created_by: Mapped["Employee | None"] = relationship("Employee", foreign_keys=[created_by_id])
    source_poc: Mapped["Poc | None"] = relationship("Poc")
    account_manager: Mapped["Employee | None"] = relationship("Employee", foreign_keys=[account_manager_id], lazy="selectin")
    technical_lead: Mapped["Employee | None"] = relationship("Employee", foreign_keys=[technical_lead_id], lazy="selectin")
    project_manager: Mapped["Employee | None"] = relationship("Employee", foreign_keys=[project_manager_id], lazy="selectin")

    current_statuses: Mapped[list["ProjectCurrentStatus"]] = relationship(
        "ProjectCurrentStatus",
        back_populates="project",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by="ProjectCurrentStatus.id",
    )
    assignments: Mapped[list["ProjectEmployee"]] = relationship(
        "ProjectEmployee", back_populates="project", cascade="all, delete-orphan", passive_deletes=True
    )
    status_history: Mapped[list["ProjectStatusComment"]] = relationship(
        "ProjectStatusComment", back_populates="project", cascade="all, delete-orphan", passive_deletes=True
    )
    activity: Mapped[list["ProjectActivityLog"]] = relationship(
        "ProjectActivityLog", back_populates="project", cascade="all, delete-orphan", passive_deletes=True
    )
    attachments: Mapped[list["ProjectAttachment"]] = relationship(
        "ProjectAttachment", back_populates="project", cascade="all, delete-orphan", passive_deletes=True
    )
    tasks: Mapped[list["ProjectTask"]] = relationship(
        "ProjectTask", back_populates="project", cascade="all, delete-orphan", passive_deletes=True
    )

    @property
    def statuses(self) -> list[str]:
        return [cs.status for cs in self.current_statuses]


class ProjectCurrentStatus(Base):
    __tablename__ = "project_current_statuses"
    __table_args__ = (UniqueConstraint("project_id", "status", name="uq_project_current_status"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    status: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    project: Mapped[Project] = relationship("Project", back_populates="current_statuses")


class ProjectEmployee(Base):
    """Role assignment on a Project. Active while unassigned_at is NULL."""

    __tablename__ = "project_employees"
    __table_args__ = (
        Index("idx_project_employees_project", "project_id"),
        Index("idx_project_employees_employee", "employee_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    role: Mapped[str] = mapped_column(String(64), nullable=False)
    assigned_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    unassigned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    project: Mapped[Project] = relationship("Project", back_populates="assignments")
    employee: Mapped["Employee"] = relationship("Employee", lazy="selectin")


class ProjectStatusComment(Base):
    __tablename__ = "project_status_comments"
    __table_args__ = (Index("idx_project_status_comments_project", "project_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    status: Mapped[str] = mapped_column(String(64), nullable=False)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    project: Mapped[Project] = relationship("Project", back_populates="status_history")
    comments: Mapped[list["ProjectComment"]] = relationship(
        "ProjectComment",
        back_populates="status_comment",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ProjectComment.created_at",
    )


class ProjectComment(Base):
    __tablename__ = "project_comments"
    __table_args__ = (Index("idx_project_comments_status_comment", "status_comment_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    status_comment_id: Mapped[int] = mapped_column(
        ForeignKey("project_status_comments.id", ondelete="CASCADE"), nullable=False
    )
    author_id: Mapped[int | None] = mapped_column(ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    comment: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    status_comment: Mapped[ProjectStatusComment] = relationship("ProjectStatusComment", back_populates="comments")
    author: Mapped["Employee | None"] = relationship("Employee", lazy="selectin")


class ProjectActivityLog(Base):
    __tablename__ = "project_activity_log"
    __table_args__ = (Index("idx_project_activity_project_ts", "project_id", "timestamp"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    activity_type: Mapped[str] = mapped_column(String(64), nullable=False)
    details: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    request_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    project: Mapped[Project] = relationship("Project", back_populates="activity")
    user: Mapped["Employee | None"] = relationship("Employee", lazy="selectin")


class ProjectAttachment(Base):
    __tablename__ = "project_attachments"
    __table_args__ = (Index("idx_project_attachments_project", "project_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    uuid: Mapped[str] = mapped_column(String(36), nullable=False, unique=True, default=_uuid_str)
    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    uploaded_by_id: Mapped[int | None] = mapped_column(ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)

    description: Mapped[str] = mapped_column(Text, nullable=False)
    original_filename: Mapped[str] = mapped_column(String(255), nullable=False)
    storage_key: Mapped[str] = mapped_column(String(512), nullable=False)
    mime_type: Mapped[str | None] = mapped_column(String(128), nullable=True)
    file_size_bytes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sha256: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    project: Mapped[Project] = relationship("Project", back_populates="attachments")
    uploaded_by: Mapped["Employee | None"] = relationship("Employee", lazy="selectin")
