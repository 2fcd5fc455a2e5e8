from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.apex.models import Base, JSONType

if TYPE_CHECKING:
    from app.apex.modules.employees.models import Employee
    from app.apex.modules.projects.models import Project


class ProjectTask(Base):
    __tablename__ = "project_tasks"
    __table_args__ = (
        Index("idx_project_tasks_project", "project_id"),
        Index("idx_project_tasks_parent", "parent_task_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    parent_task_id: Mapped[int | None] = mapped_column(ForeignKey("project_tasks.id", ondelete="CASCADE"), nullable=True)

    task_name: Mapped[str] = mapped_column(String(512), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="Not Started")
    priority: Mapped[str] = mapped_column(String(32), nullable=False, default="Normal")
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    tags: Mapped[list | None] = mapped_column(JSONType, nullable=True, default=list)

    created_by_id: Mapped[int | None] = mapped_column(ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    project: Mapped["Project"] = relationship("Project", back_populates="tasks")
    parent: Mapped["ProjectTask | None"] = relationship("ProjectTask", remote_side=[id], back_populates="subtasks")
    subtasks: Mapped[list["ProjectTask"]] = relationship(
        "ProjectTask",
        back_populates="parent",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ProjectTask.created_at",
    )
    assignee_links: Mapped[list["TaskAssignee"]] = relationship(
        "TaskAssignee", back_populates="task", cascade="all, delete-orphan", passive_deletes=True, lazy="selectin"
    )

    @property
    def assignees(self) -> list["Employee"]:
        return [link.employee for link in self.assignee_links]


class TaskAssignee(Base):
    __tablename__ = "task_assignees"

    task_id: Mapped[int] = mapped_column(ForeignKey("project_tasks.id", ondelete="CASCADE"), primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), primary_key=True)

    task: Mapped[ProjectTask] = relationship("ProjectTask", back_populates="assignee_links")
    employee: Mapped["Employee"] = relationship("Employee", lazy="selectin")
