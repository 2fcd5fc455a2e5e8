"""
Central constants for the Apex application: company roles, engagement roles and the
value lists served by /api/enums.
"""
from __future__ import annotations

# Company-wide roles (employees.role)
ROLE_LEAD = "Lead"
ROLE_ACCOUNT_MANAGER = "Account Manager"
ROLE_TECHNICAL_TEAM = "Technical Team"
ROLE_PRESALES = "Presales"
ROLE_ADMIN = "Admin"
ROLE_PROJECT_MANAGER = "Project Manager"
ROLE_MANAGED_SERVICES = "Managed Services"

EMPLOYEE_ROLES = (
    ROLE_ADMIN,
    ROLE_LEAD,
    ROLE_ACCOUNT_MANAGER,
    ROLE_PROJECT_MANAGER,
    ROLE_PRESALES,
    ROLE_TECHNICAL_TEAM,
    ROLE_MANAGED_SERVICES,
)

# Roles that always carry a technical profile
TECHNICAL_PROFILE_ROLES = frozenset({ROLE_TECHNICAL_TEAM, ROLE_MANAGED_SERVICES})

# PoC / Project assignment roles
ENG_ROLE_TECHNICAL_LEAD = "Technical Lead"
ENG_ROLE_ACCOUNT_MANAGER = "Account Manager"
ENG_ROLE_PROJECT_MANAGER = "Project Manager"
ENG_ROLE_LEAD_ENGINEER = "Lead Engineer"
ENG_ROLE_SUPPORTING_ENGINEER = "Supporting Engineer"

POC_EMPLOYEE_ROLES = (
    ENG_ROLE_TECHNICAL_LEAD,
    ENG_ROLE_ACCOUNT_MANAGER,
    ENG_ROLE_LEAD_ENGINEER,
    ENG_ROLE_SUPPORTING_ENGINEER,
)
PROJECT_EMPLOYEE_ROLES = (
    ENG_ROLE_TECHNICAL_LEAD,
    ENG_ROLE_ACCOUNT_MANAGER,
    ENG_ROLE_PROJECT_MANAGER,
    ENG_ROLE_LEAD_ENGINEER,
    ENG_ROLE_SUPPORTING_ENGINEER,
)

# Application roles (permission matrix in rbac.py)
APP_ROLE_ADMIN = "admin"
APP_ROLE_LEAD = "lead"
APP_ROLE_ACCOUNT_MANAGER = "account_manager"
APP_ROLE_TECHNICAL_TEAM = "technical_team"
APP_ROLE_PROJECT_MANAGER = "project_manager"
APP_ROLE_PRESALES = "presales"
APPLICATION_ROLES = (
    APP_ROLE_ADMIN,
    APP_ROLE_LEAD,
    APP_ROLE_ACCOUNT_MANAGER,
    APP_ROLE_TECHNICAL_TEAM,
    APP_ROLE_PROJECT_MANAGER,
    APP_ROLE_PRESALES,
)
DEFAULT_APPLICATION_ROLE = APP_ROLE_TECHNICAL_TEAM

# PoC workflow
WORKFLOW_PENDING = "pending_presales_review"
WORKFLOW_ACTIVE = "active"
WORKFLOW_REJECTED = "rejected"

POC_STATUSES = ("Not Started", "In Progress", "On Hold", "Done", "Failed", "Cancelled")
PROJECT_STATUSES = (
    "Planning",
    "In Progress",
    "On Hold",
    "Pending Customer",
    "UAT",
    "Go Live",
    "Done",
    "Cancelled",
)

EMPLOYEE_LOCATIONS = ("Remote", "In-Office", "On-Site", "Off-Site")
EMPLOYEE_STATUSES = ("Active", "On Leave", "Other")
TECHNICAL_TEAMS = ("Delivery", "Managed Services")

INDUSTRIES = (
    "Banking",
    "Education",
    "Energy",
    "Government",
    "Healthcare",
    "Retail",
    "Telecom",
    "Transportation",
    "Other",
)
ORGANIZATION_TYPES = ("Government", "Semi-Government", "Private")
ADDRESS_TYPES = ("Head Office", "Branch", "Data Center", "Other")
DEFAULT_COUNTRY = "KSA"

TASK_STATUS_NOT_STARTED = "Not Started"
TASK_STATUS_IN_PROGRESS = "In Progress"
TASK_STATUS_COMPLETED = "Completed"
TASK_STATUSES = (TASK_STATUS_NOT_STARTED, TASK_STATUS_IN_PROGRESS, TASK_STATUS_COMPLETED)
TASK_PRIORITIES = ("Low", "Normal", "High", "Urgent")
DEFAULT_TASK_PRIORITY = "Normal"

EMPLOYEE_EMAIL_PATTERN = r"^[A-Za-z0-9._%+-]+@taqniyat\.com\.sa$"

ENUMS: dict[str, tuple[str, ...]] = {
    "poc-statuses": POC_STATUSES,
    "project-statuses": PROJECT_STATUSES,
    "employee-roles": EMPLOYEE_ROLES,
    "employee-locations": EMPLOYEE_LOCATIONS,
    "employee-statuses": EMPLOYEE_STATUSES,
    "industries": INDUSTRIES,
    "organization-types": ORGANIZATION_TYPES,
    "poc-employee-roles": POC_EMPLOYEE_ROLES,
    "project-employee-roles": PROJECT_EMPLOYEE_ROLES,
    "address-types": ADDRESS_TYPES,
    "task-statuses": TASK_STATUSES,
    "task-priorities": TASK_PRIORITIES,
    "technical-teams": TECHNICAL_TEAMS,
}
