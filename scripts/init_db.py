import os
import sys
from pathlib import Path

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.apex.constants import APP_ROLE_ADMIN, ROLE_ADMIN
from app.apex.models import Employee
from scripts._db_utils import script_session


def seed_only(*, database_url: str | None = None) -> None:
    """
    Make sure the bootstrap admin employee exists and holds the admin application role.
    Idempotent; an existing employee's profile fields are left alone.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "").strip().lower()
    if not admin_email:
        print("ADMIN_EMAIL not set; skipping admin seed.")
        return

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///apex.db").strip()

    # Direct engine/session so this can run in release without importing app.wsgi.
    with script_session(db_url) as s:
        employee = s.query(Employee).filter(Employee.email.ilike(admin_email)).one_or_none()
        if not employee:
            employee = Employee(
                first_name=(os.environ.get("ADMIN_FIRST_NAME") or "Apex").strip(),
                last_name=(os.environ.get("ADMIN_LAST_NAME") or "Admin").strip(),
                email=admin_email,
                role=ROLE_ADMIN,
                status="Active",
                skills=[],
                certificates=[],
            )
            s.add(employee)
        employee.application_role = APP_ROLE_ADMIN

    print("Initialized database (seed_only).")
    print(f"Admin email: {admin_email}")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
