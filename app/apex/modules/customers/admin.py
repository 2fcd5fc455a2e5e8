from __future__ import annotations

from flask import Blueprint, g, jsonify

from app.apex.constants import ROLE_ACCOUNT_MANAGER
from app.apex.db import db_session
from app.apex.errors import NotFound
from app.apex.modules.customers.models import Address, Customer
from app.apex.modules.customers.service import (
    create_address,
    create_customer,
    delete_customer,
    serialize_address,
    serialize_customer,
    update_address,
    update_customer,
)
from app.apex.rbac import require_permission
from app.apex.utils import json_body, query_int

bp = Blueprint("customers", __name__)


def _get_customer_or_404(s, customer_id: int) -> Customer:
    customer = s.get(Customer, customer_id)
    if not customer:
        raise NotFound("Customer not found")
    return customer


# ---------- Customers ----------
@bp.get("/customers")
@require_permission("customer.view")
def customers_list():
    s = db_session()
    q = s.query(Customer)
    user = g.current_user
    # Account Managers only see their own book of customers.
    if user.role == ROLE_ACCOUNT_MANAGER:
        q = q.filter(Customer.account_manager_id == user.id)
    customers = q.order_by(Customer.name.asc()).all()
    return jsonify([serialize_customer(c) for c in customers])


@bp.get("/customers/<int:customer_id>")
@require_permission("customer.view")
def customer_detail(customer_id: int):
    s = db_session()
    return jsonify(serialize_customer(_get_customer_or_404(s, customer_id)))


@bp.post("/customers")
@require_permission("customer.edit")
def customers_create():
    s = db_session()
    customer = create_customer(s, json_body(), g.current_user)
    s.commit()
    return jsonify(serialize_customer(customer)), 201


@bp.put("/customers/<int:customer_id>")
@require_permission("customer.edit")
def customers_update(customer_id: int):
    s = db_session()
    customer = _get_customer_or_404(s, customer_id)
    update_customer(s, customer, json_body(), g.current_user)
    s.commit()
    return jsonify(serialize_customer(customer))


@bp.delete("/customers/<int:customer_id>")
@require_permission("customer.edit")
def customers_delete(customer_id: int):
    s = db_session()
    customer = _get_customer_or_404(s, customer_id)
    delete_customer(s, customer, g.current_user)
    s.commit()
    return jsonify({"message": "Customer archived and deleted successfully", "id": customer_id})


# ---------- Addresses ----------
@bp.get("/addresses")
@require_permission("customer.view")
def addresses_list():
    s = db_session()
    q = s.query(Address)
    customer_id = query_int("customerId")
    if customer_id is not None:
        q = q.filter(Address.customer_id == customer_id)
    addresses = q.order_by(Address.city.asc(), Address.street.asc()).all()
    return jsonify([serialize_address(a) for a in addresses])


@bp.get("/addresses/<int:address_id>")
@require_permission("customer.view")
def address_detail(address_id: int):
    s = db_session()
    address = s.get(Address, address_id)
    if not address:
        raise NotFound("Address not found")
    return jsonify(serialize_address(address))


@bp.post("/addresses")
@require_permission("customer.edit")
def addresses_create():
    s = db_session()
    address = create_address(s, json_body())
    s.commit()
    return jsonify(serialize_address(address)), 201


@bp.put("/addresses/<int:address_id>")
@require_permission("customer.edit")
def addresses_update(address_id: int):
    s = db_session()
    address = s.get(Address, address_id)
    if not address:
        raise NotFound("Address not found")
    update_address(s, address, json_body())
    s.commit()
    return jsonify(serialize_address(address))


@bp.delete("/addresses/<int:address_id>")
@require_permission("customer.edit")
def addresses_delete(address_id: int):
    s = db_session()
    address = s.get(Address, address_id)
    if not address:
        raise NotFound("Address not found")
    deleted = serialize_address(address)
    s.delete(address)
    s.commit()
    return jsonify({"message": "Address deleted successfully", "deletedAddress": deleted})
