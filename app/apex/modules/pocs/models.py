from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.apex.models import Base, JSONType

if TYPE_CHECKING:
    from app.apex.modules.customers.models import Customer
    from app.apex.modules.employees.models import Employee


def _uuid_str() -> str:
    return str(uuid.uuid4())


class Poc(Base):
    __tablename__ = "pocs"
    __table_args__ = (
        Index("idx_pocs_customer", "customer_id"),
        Index("idx_pocs_workflow_status", "workflow_status"),
        Index("idx_pocs_updated_at", "updated_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id", ondelete="RESTRICT"), nullable=False)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    technology: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    status: Mapped[str] = mapped_column(String(64), nullable=False)
    workflow_status: Mapped[str] = mapped_column(String(64), nullable=False, default="pending_presales_review")
    last_comment: Mapped[str | None] = mapped_column(Text, nullable=True)

    is_budget_allocated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_vendor_aware: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_by_id: Mapped[int | None] = mapped_column(ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    customer: Mapped["Customer"] = relationship("Customer", lazy="selectin")
    created_by: Mapped["Employee | None"] = relationship("Employee", foreign_keys=[created_by_id])
    assignments: Mapped[list["PocEmployee"]] = relationship(
        "PocEmployee", back_populates="poc", cascade="all, delete-orphan", passive_deletes=True
    )
    status_history: Mapped[list["PocStatusComment"]] = relationship(
        "PocStatusComment", back_populates="poc", cascade="all, delete-orphan", passive_deletes=True
    )
    activity: Mapped[list["PocActivityLog"]] = relationship(
        "PocActivityLog", back_populates="poc", cascade="all, delete-orphan", passive_deletes=True
    )
    attachments: Mapped[list["PocAttachment"]] = relationship(
        "PocAttachment", back_populates="poc", cascade="all, delete-orphan", passive_deletes=True
    )


class PocEmployee(Base):
    """Role assignment on a PoC. Active while unassigned_at is NULL."""

    __tablename__ = "poc_employees"
    __table_args__ = (
        Index("idx_poc_employees_poc", "poc_id"),
        Index("idx_poc_employees_employee", "employee_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    poc_id: Mapped[int] = mapped_column(ForeignKey("pocs.id", ondelete="CASCADE"), nullable=False)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    role: Mapped[str] = mapped_column(String(64), nullable=False)
    assigned_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    unassigned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    poc: Mapped[Poc] = relationship("Poc", back_populates="assignments")
    employee: Mapped["Employee"] = relationship("Employee", lazy="selectin")


class PocStatusComment(Base):
    """One row per status period; ended_at is NULL for the open one."""

    __tablename__ = "poc_status_comments"
    __table_args__ = (Index("idx_poc_status_comments_poc", "poc_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    poc_id: Mapped[int] = mapped_column(ForeignKey("pocs.id", ondelete="CASCADE"), nullable=False)
    status: Mapped[str] = mapped_column(String(64), nullable=False)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    poc: Mapped[Poc] = relationship("Poc", back_populates="status_history")
    comments: Mapped[list["PocComment"]] = relationship(
        "PocComment",
        back_populates="status_comment",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="PocComment.created_at",
    )


class PocComment(Base):
    __tablename__ = "poc_comments"
    __table_args__ = (Index("idx_poc_comments_status_comment", "status_comment_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    status_comment_id: Mapped[int] = mapped_column(
        ForeignKey("poc_status_comments.id", ondelete="CASCADE"), nullable=False
    )
    author_id: Mapped[int | None] = mapped_column(ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    comment: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    status_comment: Mapped[PocStatusComment] = relationship("PocStatusComment", back_populates="comments")
    author: Mapped["Employee | None"] = relationship("Employee", lazy="selectin")


class PocActivityLog(Base):
    __tablename__ = "poc_activity_log"
    __table_args__ = (Index("idx_poc_activity_poc_ts", "poc_id", "timestamp"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    poc_id: Mapped[int] = mapped_column(ForeignKey("pocs.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    activity_type: Mapped[str] = mapped_column(String(64), nullable=False)  # e.g. "STATUS_UPDATED"
    details: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    request_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    poc: Mapped[Poc] = relationship("Poc", back_populates="activity")
    user: Mapped["Employee | None"] = relationship("Employee", lazy="selectin")


class PocAttachment(Base):
    __tablename__ = "poc_attachments"
    __table_args__ = (Index("idx_poc_attachments_poc", "poc_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    uuid: Mapped[str] = mapped_column(String(36), nullable=False, unique=True, default=_uuid_str)
    poc_id: Mapped[int] = mapped_column(ForeignKey("pocs.id", ondelete="CASCADE"), nullable=False)
    uploaded_by_id: Mapped[int | None] = mapped_column(ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)

    description: Mapped[str] = mapped_column(Text, nullable=False)
    original_filename: Mapped[str] = mapped_column(String(255), nullable=False)
    storage_key: Mapped[str] = mapped_column(String(512), nullable=False)
    mime_type: Mapped[str | None] = mapped_column(String(128), nullable=True)
    file_size_bytes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sha256: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    poc: Mapped[Poc] = relationship("Poc", back_populates="attachments")
    uploaded_by: Mapped["Employee | None"] = relationship("Employee", lazy="selectin")
