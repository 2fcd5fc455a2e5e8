"""
Team-role reconciliation for PoCs and Projects.

The desired team list from a create/update payload is diffed by employee id against the
currently active assignments (unassigned_at IS NULL):

- active but no longer listed  -> unassigned (timestamped)
- listed but not active         -> new assignment row
- listed and active, new role   -> role updated in place

Single-holder roles (Technical Lead, Account Manager, Project Manager) are set through
their own payload fields with `set_role_holder`, never through the team list.
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from app.apex.constants import ENG_ROLE_LEAD_ENGINEER
from app.apex.errors import Conflict, NotFound, ValidationError
from app.apex.modules.employees.models import Employee
from app.apex.utils import parse_datetime, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.apex.modules.engagements.kinds import EngagementKind


@dataclass(frozen=True)
class TeamMember:
    employee_id: int
    role: str
    assigned_at: datetime | None = None


@dataclass
class TeamDiff:
    added: list[TeamMember] = field(default_factory=list)
    removed: list[int] = field(default_factory=list)
    role_changed: list[tuple[int, str, str]] = field(default_factory=list)  # (employee_id, old, new)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.role_changed)


@dataclass
class TeamChanges:
    """Applied changes with the Employee rows resolved, for activity logs and notifications."""

    assigned: list[tuple[Employee, str]] = field(default_factory=list)
    unassigned: list[tuple[Employee, str]] = field(default_factory=list)
    role_changed: list[tuple[Employee, str, str]] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.assigned or self.unassigned or self.role_changed)


def diff_team(current: Mapping[int, str], desired: Sequence[TeamMember]) -> TeamDiff:
    """Pure set-difference of {employee_id: role} against the desired members."""
    desired_by_id = {m.employee_id: m for m in desired}
    diff = TeamDiff()
    diff.removed = [eid for eid in current if eid not in desired_by_id]
    diff.added = [m for m in desired if m.employee_id not in current]
    diff.role_changed = [
        (eid, current[eid], m.role)
        for eid, m in desired_by_id.items()
        if eid in current and current[eid] != m.role
    ]
    return diff


def parse_team_payload(
    kind: "EngagementKind",
    items: Any,
    *,
    default_assigned_at: datetime | None = None,
    skip_employee_ids: Iterable[int] = (),
) -> list[TeamMember]:
    """
    Normalize [{employeeId, role, assignedAt?}, ...] into TeamMembers.
    Entries for the single-holder employees (lead, AM, PM) are skipped.
    """
    if items is None:
        return []
    if not isinstance(items, list):
        raise ValidationError("Team assignments must be a list.")

    skip = set(skip_employee_ids)
    members: list[TeamMember] = []
    seen: set[int] = set()
    for item in items:
        if not isinstance(item, dict):
            raise ValidationError("Each team assignment must be an object with employeeId and role.")
        employee_id = parse_int(item.get("employeeId"), "employeeId")
        role = (item.get("role") or "").strip()
        if employee_id in skip:
            continue
        if role not in kind.team_roles:
            raise ValidationError(
                f"Invalid {kind.label} team role '{role}'. Must be one of: {', '.join(kind.team_roles)}"
            )
        if employee_id in seen:
            raise ValidationError(f"Employee (ID: {employee_id}) appears more than once in the team.")
        seen.add(employee_id)
        members.append(
            TeamMember(
                employee_id=employee_id,
                role=role,
                assigned_at=parse_datetime(item.get("assignedAt")) or default_assigned_at,
            )
        )

    lead_engineers = [m for m in members if m.role == ENG_ROLE_LEAD_ENGINEER]
    if len(lead_engineers) > 1:
        raise Conflict(f"A {kind.label} can only have one active {ENG_ROLE_LEAD_ENGINEER}.")
    return members


def check_company_role(kind: "EngagementKind", employee: Employee, role: str) -> None:
    required = kind.required_company_role.get(role)
    if required is None:
        raise ValidationError(f"Invalid {kind.label} role specified: {role}")
    if employee.role != required:
        raise ValidationError(
            f"Employee (ID: {employee.id}) must have company role '{required}' to be '{role}'."
        )


def get_employee(s: "Session", employee_id: int) -> Employee:
    employee = s.get(Employee, employee_id)
    if employee is None:
        raise NotFound(f"Employee with id {employee_id} not found.")
    return employee


def active_assignments(s: "Session", kind: "EngagementKind", parent_id: int, *, role: str | None = None) -> list:
    model = kind.assignment_model
    q = s.query(model).filter(kind.fk_column(model) == parent_id).filter(model.unassigned_at.is_(None))
    if role is not None:
        q = q.filter(model.role == role)
    return q.order_by(model.assigned_at.asc(), model.id.asc()).all()


def active_holder(s: "Session", kind: "EngagementKind", parent_id: int, role: str) -> Employee | None:
    rows = active_assignments(s, kind, parent_id, role=role)
    return rows[0].employee if rows else None


def set_role_holder(
    s: "Session",
    kind: "EngagementKind",
    parent_id: int,
    role: str,
    employee_id: int,
    *,
    assigned_at: datetime | None = None,
    now: datetime | None = None,
) -> tuple[Employee | None, Employee, bool]:
    """
    Make employee_id the only active holder of a single-holder role.
    Returns (previous holder, new holder, changed).
    """
    now = now or datetime.utcnow()
    employee = get_employee(s, employee_id)
    check_company_role(kind, employee, role)

    rows = active_assignments(s, kind, parent_id, role=role)
    previous = next((r.employee for r in rows if r.employee_id != employee_id), None)
    already_active = any(r.employee_id == employee_id for r in rows)
    for r in rows:
        if r.employee_id != employee_id:
            r.unassigned_at = now
    if not already_active:
        row = kind.assignment_model(employee_id=employee_id, role=role, assigned_at=assigned_at or now)
        setattr(row, kind.fk, parent_id)
        s.add(row)
    s.flush()
    return previous, employee, (not already_active) or previous is not None


def apply_team(
    s: "Session",
    kind: "EngagementKind",
    parent_id: int,
    desired: Sequence[TeamMember],
    *,
    now: datetime | None = None,
) -> TeamChanges:
    """Reconcile the non-managed team against `desired` and write the row-level changes."""
    now = now or datetime.utcnow()
    rows = [r for r in active_assignments(s, kind, parent_id) if r.role not in kind.managed_roles]
    rows_by_employee = {r.employee_id: r for r in rows}
    current = {r.employee_id: r.role for r in rows}
    diff = diff_team(current, desired)

    changes = TeamChanges()
    for member in diff.added:
        employee = get_employee(s, member.employee_id)
        check_company_role(kind, employee, member.role)
        row = kind.assignment_model(
            employee_id=member.employee_id,
            role=member.role,
            assigned_at=member.assigned_at or now,
        )
        setattr(row, kind.fk, parent_id)
        s.add(row)
        changes.assigned.append((employee, member.role))

    for employee_id, old_role, new_role in diff.role_changed:
        row = rows_by_employee[employee_id]
        check_company_role(kind, row.employee, new_role)
        row.role = new_role
        changes.role_changed.append((row.employee, old_role, new_role))

    for employee_id in diff.removed:
        row = rows_by_employee[employee_id]
        row.unassigned_at = now
        changes.unassigned.append((row.employee, row.role))

    s.flush()
    return changes
