"""initial schema: employees, customers, pocs, projects, tasks

Revision ID: a0c1e2d3f4b5
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "a0c1e2d3f4b5"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=False), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=False), nullable=False, server_default=sa.func.now()),
    ]


def _engagement_children(parent: str, fk: str) -> None:
    """<parent>_employees, _status_comments, _comments, _activity_log, _attachments."""
    op.create_table(
        f"{parent}_employees",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column(fk, sa.Integer(), sa.ForeignKey(f"{parent}s.id", ondelete="CASCADE"), nullable=False),
        sa.Column("employee_id", sa.Integer(), sa.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False),
        sa.Column("role", sa.String(64), nullable=False),
        sa.Column("assigned_at", sa.DateTime(timezone=False), nullable=False, server_default=sa.func.now()),
        sa.Column("unassigned_at", sa.DateTime(timezone=False), nullable=True),
    )
    op.create_index(f"idx_{parent}_employees_{parent}", f"{parent}_employees", [fk])
    op.create_index(f"idx_{parent}_employees_employee", f"{parent}_employees", ["employee_id"])

    op.create_table(
        f"{parent}_status_comments",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column(fk, sa.Integer(), sa.ForeignKey(f"{parent}s.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(64), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=False), nullable=False, server_default=sa.func.now()),
        sa.Column("ended_at", sa.DateTime(timezone=False), nullable=True),
    )
    op.create_index(f"idx_{parent}_status_comments_{parent}", f"{parent}_status_comments", [fk])

    op.create_table(
        f"{parent}_comments",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column(
            "status_comment_id",
            sa.Integer(),
            sa.ForeignKey(f"{parent}_status_comments.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("author_id", sa.Integer(), sa.ForeignKey("employees.id", ondelete="SET NULL"), nullable=True),
        sa.Column("comment", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=False), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=False), nullable=True),
    )
    op.create_index(f"idx_{parent}_comments_status_comment", f"{parent}_comments", ["status_comment_id"])

    op.create_table(
        f"{parent}_activity_log",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column(fk, sa.Integer(), sa.ForeignKey(f"{parent}s.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("employees.id", ondelete="SET NULL"), nullable=True),
        sa.Column("activity_type", sa.String(64), nullable=False),
        sa.Column("details", JSONType, nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=False), nullable=False, server_default=sa.func.now()),
        sa.Column("request_id", sa.String(64), nullable=True),
    )
    op.create_index(f"idx_{parent}_activity_{parent}_ts", f"{parent}_activity_log", [fk, "timestamp"])

    op.create_table(
        f"{parent}_attachments",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("uuid", sa.String(36), nullable=False, unique=True),
        sa.Column(fk, sa.Integer(), sa.ForeignKey(f"{parent}s.id", ondelete="CASCADE"), nullable=False),
        sa.Column("uploaded_by_id", sa.Integer(), sa.ForeignKey("employees.id", ondelete="SET NULL"), nullable=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("original_filename", sa.String(255), nullable=False),
        sa.Column("storage_key", sa.String(512), nullable=False),
        sa.Column("mime_type", sa.String(128), nullable=True),
        sa.Column("file_size_bytes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("sha256", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=False), nullable=False, server_default=sa.func.now()),
    )
    op.create_index(f"idx_{parent}_attachments_{parent}", f"{parent}_attachments", [fk])


def upgrade() -> None:
    bind = op.get_bind()
    existing_tables = set(inspect(bind).get_table_names())
    if "employees" in existing_tables:
        # Schema already created (e.g. by create_all in a dev database).
        return

    op.create_table(
        "employees",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("first_name", sa.String(128), nullable=False),
        sa.Column("last_name", sa.String(128), nullable=False),
        sa.Column("email", sa.String(320), nullable=False, unique=True),
        sa.Column("phone_number", sa.String(64), nullable=True),
        sa.Column("work_ext", sa.Integer(), nullable=True),
        sa.Column("job_title", sa.String(255), nullable=True),
        sa.Column("role", sa.String(64), nullable=False),
        sa.Column("application_role", sa.String(64), nullable=False, server_default="technical_team"),
        sa.Column("manager_email", sa.String(320), nullable=True),
        sa.Column("status", sa.String(64), nullable=True),
        sa.Column("location", sa.String(64), nullable=True),
        sa.Column("skills", JSONType, nullable=True),
        sa.Column("certificates", JSONType, nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_employees_role", "employees", ["role"])
    op.create_index("idx_employees_last_first", "employees", ["last_name", "first_name"])

    op.create_table(
        "technical_profiles",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column(
            "employee_id",
            sa.Integer(),
            sa.ForeignKey("employees.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("team", sa.String(64), nullable=True),
        sa.Column("grade", sa.String(8), nullable=True),
        sa.Column("level", sa.String(64), nullable=True),
        sa.Column("years_of_experience", sa.Float(), nullable=True),
        sa.Column("skills", JSONType, nullable=True),
        sa.Column("certificates", JSONType, nullable=True),
        sa.Column("fields_covered", JSONType, nullable=True),
        sa.Column("technical_development_plan", JSONType, nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=False), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "customers",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("website", sa.String(512), nullable=True),
        sa.Column("contact_person", sa.String(255), nullable=True),
        sa.Column("contact_email", sa.String(320), nullable=True),
        sa.Column("contact_phone", sa.String(64), nullable=True),
        sa.Column("industry", sa.String(128), nullable=True),
        sa.Column("organization_type", sa.String(128), nullable=True),
        sa.Column(
            "account_manager_id", sa.Integer(), sa.ForeignKey("employees.id", ondelete="SET NULL"), nullable=True
        ),
        *_timestamps(),
    )
    op.create_index("idx_customers_name", "customers", ["name"])
    op.create_index("idx_customers_account_manager", "customers", ["account_manager_id"])

    op.create_table(
        "addresses",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(64), nullable=False),
        sa.Column("street", sa.String(255), nullable=True),
        sa.Column("city", sa.String(128), nullable=False),
        sa.Column("district", sa.String(128), nullable=True),
        sa.Column("postal_code", sa.String(32), nullable=True),
        sa.Column("country", sa.String(64), nullable=False, server_default="KSA"),
        sa.Column("location_url", sa.Text(), nullable=False),
    )
    op.create_index("idx_addresses_customer", "addresses", ["customer_id"])

    op.create_table(
        "pocs",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("technology", JSONType, nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("status", sa.String(64), nullable=False),
        sa.Column("workflow_status", sa.String(64), nullable=False, server_default="pending_presales_review"),
        sa.Column("last_comment", sa.Text(), nullable=True),
        sa.Column("is_budget_allocated", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_vendor_aware", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_by_id", sa.Integer(), sa.ForeignKey("employees.id", ondelete="SET NULL"), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_pocs_customer", "pocs", ["customer_id"])
    op.create_index("idx_pocs_workflow_status", "pocs", ["workflow_status"])
    op.create_index("idx_pocs_updated_at", "pocs", ["updated_at"])
    _engagement_children("poc", "poc_id")

    op.create_table(
        "projects",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("source_poc_id", sa.Integer(), sa.ForeignKey("pocs.id", ondelete="SET NULL"), nullable=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("technology", JSONType, nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("last_comment", sa.Text(), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column(
            "account_manager_id", sa.Integer(), sa.ForeignKey("employees.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column(
            "technical_lead_id", sa.Integer(), sa.ForeignKey("employees.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column(
            "project_manager_id", sa.Integer(), sa.ForeignKey("employees.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("created_by_id", sa.Integer(), sa.ForeignKey("employees.id", ondelete="SET NULL"), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_projects_customer", "projects", ["customer_id"])
    op.create_index("idx_projects_updated_at", "projects", ["updated_at"])

    op.create_table(
        "project_current_statuses",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=False), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("project_id", "status", name="uq_project_current_status"),
    )
    _engagement_children("project", "project_id")

    op.create_table(
        "project_tasks",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "parent_task_id", sa.Integer(), sa.ForeignKey("project_tasks.id", ondelete="CASCADE"), nullable=True
        ),
        sa.Column("task_name", sa.String(512), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(32), nullable=False, server_default="Not Started"),
        sa.Column("priority", sa.String(32), nullable=False, server_default="Normal"),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("tags", JSONType, nullable=True),
        sa.Column("created_by_id", sa.Integer(), sa.ForeignKey("employees.id", ondelete="SET NULL"), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_project_tasks_project", "project_tasks", ["project_id"])
    op.create_index("idx_project_tasks_parent", "project_tasks", ["parent_task_id"])

    op.create_table(
        "task_assignees",
        sa.Column(
            "task_id", sa.Integer(), sa.ForeignKey("project_tasks.id", ondelete="CASCADE"), primary_key=True
        ),
        sa.Column("employee_id", sa.Integer(), sa.ForeignKey("employees.id", ondelete="CASCADE"), primary_key=True),
    )

    op.create_table(
        "archived_records",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("entity_type", sa.String(64), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("snapshot", JSONType, nullable=False),
        sa.Column("archived_at", sa.DateTime(timezone=False), nullable=False, server_default=sa.func.now()),
        sa.Column(
            "archived_by_id", sa.Integer(), sa.ForeignKey("employees.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("request_id", sa.String(64), nullable=True),
    )
    op.create_index("idx_archived_entity", "archived_records", ["entity_type", "entity_id"])


def downgrade() -> None:
    for table in (
        "archived_records",
        "task_assignees",
        "project_tasks",
        "project_attachments",
        "project_activity_log",
        "project_comments",
        "project_status_comments",
        "project_employees",
        "project_current_statuses",
        "projects",
        "poc_attachments",
        "poc_activity_log",
        "poc_comments",
        "poc_status_comments",
        "poc_employees",
        "pocs",
        "addresses",
        "customers",
        "technical_profiles",
        "employees",
    ):
        op.drop_table(table)
