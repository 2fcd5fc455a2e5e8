from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from app.apex.archive import archive_snapshot
from app.apex.constants import DEFAULT_COUNTRY, ROLE_ACCOUNT_MANAGER
from app.apex.errors import Conflict, NotFound, ValidationError, raise_if_errors
from app.apex.modules.employees.models import Employee
from app.apex.utils import clean_str, iso, optional_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.apex.modules.customers.models import Address, Customer

logger = logging.getLogger(__name__)

REQUIRED_CUSTOMER_FIELDS = (
    ("name", "name"),
    ("contactPerson", "contactPerson"),
    ("contactEmail", "contactEmail"),
    ("contactPhone", "contactPhone"),
    ("industry", "industry"),
    ("organizationType", "organizationType"),
)

_CUSTOMER_FIELDS = {
    "name": "name",
    "website": "website",
    "contactPerson": "contact_person",
    "contactEmail": "contact_email",
    "contactPhone": "contact_phone",
    "industry": "industry",
    "organizationType": "organization_type",
}

_ADDRESS_FIELDS = {
    "street": "street",
    "district": "district",
    "postalCode": "postal_code",
    "city": "city",
    "type": "type",
    "locationUrl": "location_url",
}
_REQUIRED_ADDRESS_COLUMNS = ("city", "type", "location_url")


def serialize_address(a: "Address") -> dict:
    return {
        "id": a.id,
        "customerId": a.customer_id,
        "street": a.street,
        "district": a.district,
        "postalCode": a.postal_code,
        "city": a.city,
        "country": a.country,
        "type": a.type,
        "locationUrl": a.location_url,
    }


def serialize_customer(c: "Customer") -> dict:
    am = c.account_manager
    return {
        "id": c.id,
        "name": c.name,
        "website": c.website,
        "contactPerson": c.contact_person,
        "contactEmail": c.contact_email,
        "contactPhone": c.contact_phone,
        "industry": c.industry,
        "organizationType": c.organization_type,
        "accountManagerId": c.account_manager_id,
        "accountManager": {"id": am.id, "firstName": am.first_name, "lastName": am.last_name} if am else None,
        "addresses": [serialize_address(a) for a in c.addresses],
        "createdAt": iso(c.created_at),
        "updatedAt": iso(c.updated_at),
    }


def validate_customer_payload(payload: dict, *, partial: bool = False) -> list[str]:
    """Validate customer create/update payload. Returns list of errors."""
    errors = []
    keys = [k for k, _ in REQUIRED_CUSTOMER_FIELDS]
    if not partial:
        missing = [label for key, label in REQUIRED_CUSTOMER_FIELDS if not clean_str(payload.get(key))]
        if missing:
            errors.append(f"Missing required fields: {', '.join(missing)}")
    else:
        for key in keys:
            if key in payload and not clean_str(payload.get(key)):
                errors.append(f"{key} cannot be empty.")

    addresses = payload.get("addresses")
    if addresses is not None:
        if not isinstance(addresses, list):
            errors.append("addresses must be a list.")
        else:
            for i, addr in enumerate(addresses):
                errors.extend(validate_address_payload(addr, index=i))
    return errors


def validate_address_payload(addr, *, index: int | None = None) -> list[str]:
    where = f"Address #{index + 1}" if index is not None else "Address"
    if not isinstance(addr, dict):
        return [f"{where} must be an object."]
    missing = [key for key in ("city", "type", "locationUrl") if not clean_str(addr.get(key))]
    if missing:
        return [f"{where} is missing required fields: {', '.join(missing)}"]
    return []


def _resolve_account_manager(s: "Session", raw) -> int | None:
    am_id = optional_int(raw, "accountManagerId")
    if am_id is None:
        return None
    am = s.get(Employee, am_id)
    if am is None:
        raise NotFound(f"Employee with id {am_id} not found.")
    if am.role != ROLE_ACCOUNT_MANAGER:
        raise ValidationError(f"Employee (ID: {am_id}) must have company role '{ROLE_ACCOUNT_MANAGER}'.")
    return am_id


def _build_address(payload: dict) -> "Address":
    from app.apex.modules.customers.models import Address

    a = Address(country=DEFAULT_COUNTRY)
    for key, column in _ADDRESS_FIELDS.items():
        setattr(a, column, clean_str(payload.get(key)))
    return a


def create_customer(s: "Session", payload: dict, user: "Employee") -> "Customer":
    from app.apex.modules.customers.models import Customer

    raise_if_errors(validate_customer_payload(payload))
    now = datetime.utcnow()
    customer = Customer(created_at=now, updated_at=now)
    for key, column in _CUSTOMER_FIELDS.items():
        setattr(customer, column, clean_str(payload.get(key)))
    am_id = _resolve_account_manager(s, payload.get("accountManagerId"))
    customer.account_manager = s.get(Employee, am_id) if am_id is not None else None
    for addr in payload.get("addresses") or []:
        customer.addresses.append(_build_address(addr))
    s.add(customer)
    s.flush()
    logger.info("Customer created id=%s name=%r by=%s", customer.id, customer.name, user.id if user else None)
    return customer


def update_customer(s: "Session", customer: "Customer", payload: dict, user: "Employee") -> "Customer":
    """
    Update scalar fields present in the payload. When `addresses` is given, addresses with
    an id are updated, new ones are inserted and existing ones left out are deleted.
    """
    raise_if_errors(validate_customer_payload(payload, partial=True))

    changes = {}
    for key, column in _CUSTOMER_FIELDS.items():
        if key not in payload:
            continue
        new = clean_str(payload.get(key))
        old = getattr(customer, column)
        if new != old:
            changes[column] = {"old": old, "new": new}
            setattr(customer, column, new)

    if "accountManagerId" in payload:
        new_am = _resolve_account_manager(s, payload.get("accountManagerId"))
        if new_am != customer.account_manager_id:
            changes["account_manager_id"] = {"old": customer.account_manager_id, "new": new_am}
            customer.account_manager = s.get(Employee, new_am) if new_am is not None else None

    if "addresses" in payload and payload["addresses"] is not None:
        existing = {a.id: a for a in customer.addresses}
        keep_ids: set[int] = set()
        for addr in payload["addresses"]:
            addr_id = optional_int(addr.get("id"), "address id")
            if addr_id is not None and addr_id in existing:
                a = existing[addr_id]
                for key, column in _ADDRESS_FIELDS.items():
                    setattr(a, column, clean_str(addr.get(key)))
                keep_ids.add(addr_id)
            else:
                customer.addresses.append(_build_address(addr))
        removed = [a for a_id, a in existing.items() if a_id not in keep_ids]
        for a in removed:
            customer.addresses.remove(a)
        if removed:
            changes["addresses_removed"] = [a.id for a in removed]

    customer.updated_at = datetime.utcnow()
    s.flush()
    logger.info("Customer updated id=%s by=%s changes=%s", customer.id, user.id if user else None, sorted(changes))
    return customer


def delete_customer(s: "Session", customer: "Customer", user: "Employee") -> None:
    """Archive then delete. Customers still referenced by a PoC or Project cannot be deleted."""
    from app.apex.modules.pocs.models import Poc
    from app.apex.modules.projects.models import Project

    pocs = s.query(Poc.id).filter(Poc.customer_id == customer.id).count()
    projects = s.query(Project.id).filter(Project.customer_id == customer.id).count()
    if pocs or projects:
        raise Conflict(
            f"Customer {customer.id} is referenced by {pocs} PoC(s) and {projects} project(s) and cannot be deleted."
        )
    archive_snapshot(s, "customer", customer.id, serialize_customer(customer), actor=user)
    s.delete(customer)
    s.flush()
    logger.info("Customer archived and deleted id=%s by=%s", customer.id, user.id if user else None)


# ---------- Addresses ----------
def create_address(s: "Session", payload: dict) -> "Address":
    from app.apex.modules.customers.models import Customer

    customer_id = optional_int(payload.get("customerId"), "customerId")
    missing = [k for k in ("city", "type", "locationUrl") if not clean_str(payload.get(k))]
    if customer_id is None:
        missing.insert(0, "customerId")
    if missing:
        raise ValidationError(f"Missing required address fields: {', '.join(missing)}")
    country = clean_str(payload.get("country"))
    if country and country != DEFAULT_COUNTRY:
        raise ValidationError(f"Country must be '{DEFAULT_COUNTRY}'.")
    if s.get(Customer, customer_id) is None:
        raise NotFound(f"Customer with id {customer_id} not found.")
    a = _build_address(payload)
    a.customer_id = customer_id
    s.add(a)
    s.flush()
    return a


def update_address(s: "Session", address: "Address", payload: dict) -> "Address":
    touched = False
    for key, column in _ADDRESS_FIELDS.items():
        if key not in payload:
            continue
        value = clean_str(payload.get(key))
        if column in _REQUIRED_ADDRESS_COLUMNS and value is None:
            raise ValidationError(f"{key} cannot be empty.")
        setattr(address, column, value)
        touched = True
    if "country" in payload:
        country = clean_str(payload.get("country"))
        if country != DEFAULT_COUNTRY:
            raise ValidationError(f"Country must be '{DEFAULT_COUNTRY}'.")
        touched = True
    if not touched:
        raise ValidationError("No valid fields provided for update.")
    s.flush()
    return address
