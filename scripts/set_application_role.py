#!/usr/bin/env python3
"""Set an employee's application role (idempotent).

Usage:
  python scripts/set_application_role.py --email jane.doe@taqniyat.com.sa --role presales
"""

import argparse
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.apex.constants import APPLICATION_ROLES
from app.apex.models import Employee
from scripts._db_utils import script_session


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--email", required=True, help="Employee email")
    parser.add_argument("--role", required=True, choices=APPLICATION_ROLES, help="Application role")
    args = parser.parse_args()

    db_url = (os.environ.get("DATABASE_URL") or "sqlite:///apex.db").strip()
    with script_session(db_url) as s:
        employee = s.query(Employee).filter(Employee.email.ilike(args.email)).one_or_none()
        if not employee:
            print(f"Employee not found: {args.email}")
            return
        if employee.application_role == args.role:
            print(f"Employee already has application role '{args.role}': {args.email}")
            return
        employee.application_role = args.role
    print(f"Application role '{args.role}' set for {args.email}")


if __name__ == "__main__":
    main()
