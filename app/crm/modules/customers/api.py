from __future__ import annotations

from flask import Blueprint, jsonify

from app.crm.db import db_session
from app.crm.modules.customers.service import (
    CustomerPatch,
    count_customers_registered_today,
    create_customer,
    delete_customer,
    get_customer_by_cpf,
    get_customer_by_email,
    get_customer_by_id,
    list_customers,
    list_customers_registered_between,
    search_customers_by_name,
    search_customers_by_phone,
    update_customer,
)
from app.crm.rbac import require_operation
from app.crm.utils import datetime_arg, json_payload, required_arg

bp = Blueprint("customers", __name__)


def _not_found():
    return jsonify({"error": "not_found", "message": "Customer not found."}), 404


def _many(customers):
    return jsonify([c.to_dict() for c in customers])


# ---------- CRUD ----------
@bp.post("/customers")
@require_operation("customers.create")
def customers_create():
    s = db_session()
    customer = create_customer(s, json_payload())
    s.commit()
    return jsonify(customer.to_dict()), 201


@bp.get("/customers")
@require_operation("customers.list")
def customers_list():
    return _many(list_customers(db_session()))


@bp.get("/customers/<int:customer_id>")
@require_operation("customers.get")
def customers_get(customer_id: int):
    customer = get_customer_by_id(db_session(), customer_id)
    if customer is None:
        return _not_found()
    return jsonify(customer.to_dict())


@bp.put("/customers/<int:customer_id>")
@require_operation("customers.update")
def customers_update(customer_id: int):
    s = db_session()
    patch = CustomerPatch.from_payload(json_payload())
    customer = update_customer(s, customer_id, patch)
    s.commit()
    return jsonify(customer.to_dict())


@bp.delete("/customers/<int:customer_id>")
@require_operation("customers.delete")
def customers_delete(customer_id: int):
    s = db_session()
    delete_customer(s, customer_id)
    s.commit()
    return "", 204


# ---------- Lookups ----------
@bp.get("/customers/search")
@require_operation("customers.search_name")
def customers_search_name():
    return _many(search_customers_by_name(db_session(), required_arg("name")))


@bp.get("/customers/phone")
@require_operation("customers.search_phone")
def customers_search_phone():
    return _many(search_customers_by_phone(db_session(), required_arg("phone")))


@bp.get("/customers/email/<path:email>")
@require_operation("customers.get_by_email")
def customers_get_by_email(email: str):
    customer = get_customer_by_email(db_session(), email)
    if customer is None:
        return _not_found()
    return jsonify(customer.to_dict())


@bp.get("/customers/cpf/<cpf>")
@require_operation("customers.get_by_cpf")
def customers_get_by_cpf(cpf: str):
    customer = get_customer_by_cpf(db_session(), cpf)
    if customer is None:
        return _not_found()
    return jsonify(customer.to_dict())


# ---------- Admin ----------
@bp.get("/customers/period")
@require_operation("customers.period")
def customers_period():
    start = datetime_arg("start")
    end = datetime_arg("end")
    return _many(list_customers_registered_between(db_session(), start, end))


@bp.get("/customers/stats/registered-today")
@require_operation("customers.registered_today")
def customers_registered_today():
    return jsonify({"registered_today": count_customers_registered_today(db_session())})
