from __future__ import annotations

from dataclasses import dataclass, field

from app.apex.constants import (
    ENG_ROLE_ACCOUNT_MANAGER,
    ENG_ROLE_LEAD_ENGINEER,
    ENG_ROLE_PROJECT_MANAGER,
    ENG_ROLE_SUPPORTING_ENGINEER,
    ENG_ROLE_TECHNICAL_LEAD,
    POC_EMPLOYEE_ROLES,
    PROJECT_EMPLOYEE_ROLES,
    ROLE_ACCOUNT_MANAGER,
    ROLE_LEAD,
    ROLE_PROJECT_MANAGER,
    ROLE_TECHNICAL_TEAM,
)
from app.apex.modules.pocs.models import (
    Poc,
    PocActivityLog,
    PocAttachment,
    PocComment,
    PocEmployee,
    PocStatusComment,
)
from app.apex.modules.projects.models import (
    Project,
    ProjectActivityLog,
    ProjectAttachment,
    ProjectComment,
    ProjectEmployee,
    ProjectStatusComment,
)


@dataclass(frozen=True)
class EngagementKind:
    """Everything that differs between a PoC and a Project for the shared machinery."""

    name: str  # "poc" / "project"
    label: str  # "PoC" / "Project"
    model: type
    assignment_model: type
    status_model: type
    comment_model: type
    activity_model: type
    attachment_model: type
    fk: str  # column on child tables, e.g. "poc_id"
    id_param: str  # camelCase key in payloads/query strings, e.g. "pocId"
    link_path: str  # FRONTEND_URL/<link_path>/<id>
    roles: tuple[str, ...]
    # roles held by one active employee at a time
    single_holder_roles: frozenset[str]
    # roles set through dedicated fields (leadId, accountManagerId, ...) rather than the team list
    managed_roles: frozenset[str]
    required_company_role: dict[str, str] = field(default_factory=dict)

    @property
    def team_roles(self) -> tuple[str, ...]:
        return tuple(r for r in self.roles if r not in self.managed_roles)

    def parent_id_of(self, row) -> int:
        return getattr(row, self.fk)

    def fk_column(self, model):
        return getattr(model, self.fk)


POC = EngagementKind(
    name="poc",
    label="PoC",
    model=Poc,
    assignment_model=PocEmployee,
    status_model=PocStatusComment,
    comment_model=PocComment,
    activity_model=PocActivityLog,
    attachment_model=PocAttachment,
    fk="poc_id",
    id_param="pocId",
    link_path="pocs",
    roles=POC_EMPLOYEE_ROLES,
    single_holder_roles=frozenset({ENG_ROLE_TECHNICAL_LEAD, ENG_ROLE_ACCOUNT_MANAGER, ENG_ROLE_LEAD_ENGINEER}),
    managed_roles=frozenset({ENG_ROLE_TECHNICAL_LEAD, ENG_ROLE_ACCOUNT_MANAGER}),
    required_company_role={
        ENG_ROLE_TECHNICAL_LEAD: ROLE_LEAD,
        ENG_ROLE_ACCOUNT_MANAGER: ROLE_ACCOUNT_MANAGER,
        ENG_ROLE_LEAD_ENGINEER: ROLE_TECHNICAL_TEAM,
        ENG_ROLE_SUPPORTING_ENGINEER: ROLE_TECHNICAL_TEAM,
    },
)

PROJECT = EngagementKind(
    name="project",
    label="Project",
    model=Project,
    assignment_model=ProjectEmployee,
    status_model=ProjectStatusComment,
    comment_model=ProjectComment,
    activity_model=ProjectActivityLog,
    attachment_model=ProjectAttachment,
    fk="project_id",
    id_param="projectId",
    link_path="project",
    roles=PROJECT_EMPLOYEE_ROLES,
    single_holder_roles=frozenset(
        {ENG_ROLE_TECHNICAL_LEAD, ENG_ROLE_ACCOUNT_MANAGER, ENG_ROLE_PROJECT_MANAGER, ENG_ROLE_LEAD_ENGINEER}
    ),
    managed_roles=frozenset({ENG_ROLE_TECHNICAL_LEAD, ENG_ROLE_ACCOUNT_MANAGER, ENG_ROLE_PROJECT_MANAGER}),
    required_company_role={
        ENG_ROLE_TECHNICAL_LEAD: ROLE_LEAD,
        ENG_ROLE_ACCOUNT_MANAGER: ROLE_ACCOUNT_MANAGER,
        ENG_ROLE_PROJECT_MANAGER: ROLE_PROJECT_MANAGER,
        ENG_ROLE_LEAD_ENGINEER: ROLE_TECHNICAL_TEAM,
        ENG_ROLE_SUPPORTING_ENGINEER: ROLE_TECHNICAL_TEAM,
    },
)

KINDS = {POC.name: POC, PROJECT.name: PROJECT}
