from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# JSONB on Postgres, plain JSON elsewhere (tests run on SQLite).
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    pass


class ArchivedRecord(Base):
    """
    Snapshot of a deleted customer/PoC/project (with children) taken right before the delete.
    """

    __tablename__ = "archived_records"
    __table_args__ = (Index("idx_archived_entity", "entity_type", "entity_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    entity_type: Mapped[str] = mapped_column(String(64), nullable=False)  # "customer", "poc", "project"
    entity_id: Mapped[int] = mapped_column(Integer, nullable=False)
    snapshot: Mapped[dict] = mapped_column(JSONType, nullable=False)
    archived_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    archived_by_id: Mapped[int | None] = mapped_column(ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    request_id: Mapped[str | None] = mapped_column(String(64), nullable=True)


# Ensure module models are imported so Base.metadata includes their tables.
# (Kept at bottom to avoid circular imports.)
from app.apex.modules.employees.models import Employee, TechnicalProfile  # noqa: E402,F401
from app.apex.modules.customers.models import Address, Customer  # noqa: E402,F401
from app.apex.modules.pocs.models import (  # noqa: E402,F401
    Poc,
    PocActivityLog,
    PocAttachment,
    PocComment,
    PocEmployee,
    PocStatusComment,
)
from app.apex.modules.projects.models import (  # noqa: E402,F401
    Project,
    ProjectActivityLog,
    ProjectAttachment,
    ProjectComment,
    ProjectCurrentStatus,
    ProjectEmployee,
    ProjectStatusComment,
)
from app.apex.modules.tasks.models import ProjectTask, TaskAssignee  # noqa: E402,F401
