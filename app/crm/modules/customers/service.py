"""
CUSTOMER RULES
==============

- name and email are required; email must contain "@".
- email is unique across all customers; CPF is unique when present.
- registered_at is stamped at insert and never changes.
- Updates are partial: a patch field that is None means "leave unchanged".
  Uniqueness is only re-checked when the incoming value differs from the
  stored one, so a customer is never compared against itself.

The pre-insert existence checks are best-effort; the unique constraints on
customers.email / customers.cpf are authoritative (see Repository.save).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any

from sqlalchemy.orm import Session

from app.crm.errors import ConflictError, NotFoundError, ValidationError
from app.crm.modules.customers.models import Customer
from app.crm.repository import Repository

logger = logging.getLogger(__name__)


def _repo(s: Session) -> Repository[Customer]:
    return Repository(s, Customer)


def _text(value: Any) -> str | None:
    if value is None:
        return None
    return str(value).strip()


def parse_date(value: Any) -> date | None:
    """Parse a YYYY-MM-DD string (or pass a date through)."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raw = str(value).strip()
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError as e:
        raise ValidationError(f"Invalid date {raw!r}; expected YYYY-MM-DD.") from e


@dataclass
class CustomerPatch:
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    cpf: str | None = None
    birth_date: date | None = None

    @classmethod
    def from_payload(cls, payload: dict) -> "CustomerPatch":
        return cls(
            name=_text(payload.get("name")),
            email=_text(payload.get("email")),
            phone=_text(payload.get("phone")),
            address=_text(payload.get("address")),
            cpf=_text(payload.get("cpf")),
            birth_date=parse_date(payload.get("birth_date")),
        )


def _check_email_format(email: str) -> None:
    if "@" not in email:
        raise ValidationError("Invalid email.")


def validate_customer_payload(payload: dict) -> None:
    name = _text(payload.get("name")) or ""
    email = _text(payload.get("email")) or ""
    if not name:
        raise ValidationError("Customer name is required.")
    if not email:
        raise ValidationError("Customer email is required.")
    _check_email_format(email)


def create_customer(s: Session, payload: dict) -> Customer:
    validate_customer_payload(payload)
    repo = _repo(s)

    email = _text(payload.get("email")) or ""
    cpf = _text(payload.get("cpf")) or None

    if repo.exists_by("email", email):
        raise ConflictError("A customer with this email already exists.")
    if cpf is not None and repo.exists_by("cpf", cpf):
        raise ConflictError("A customer with this CPF already exists.")

    customer = Customer(
        name=_text(payload.get("name")) or "",
        email=email,
        phone=_text(payload.get("phone")) or None,
        address=_text(payload.get("address")) or None,
        cpf=cpf,
        birth_date=parse_date(payload.get("birth_date")),
        registered_at=datetime.now(),
    )
    repo.save(customer)
    logger.info("customer.create id=%s", customer.id)
    return customer


def get_customer_by_id(s: Session, customer_id: int) -> Customer | None:
    return _repo(s).find_by_id(customer_id)


def get_customer_by_email(s: Session, email: str) -> Customer | None:
    return _repo(s).find_by("email", (email or "").strip())


def get_customer_by_cpf(s: Session, cpf: str) -> Customer | None:
    return _repo(s).find_by("cpf", (cpf or "").strip())


def list_customers(s: Session) -> list[Customer]:
    return _repo(s).find_all()


def count_customers(s: Session) -> int:
    return _repo(s).count()


def search_customers_by_name(s: Session, text: str) -> list[Customer]:
    # autoescape: a typed "%" or "_" matches itself, not any character.
    return _repo(s).find_where(Customer.name.icontains(text or "", autoescape=True))


def search_customers_by_phone(s: Session, text: str) -> list[Customer]:
    return _repo(s).find_where(Customer.phone.contains(text or "", autoescape=True))


def list_customers_registered_between(s: Session, start: datetime, end: datetime) -> list[Customer]:
    return _repo(s).find_where(Customer.registered_at.between(start, end))


def count_customers_registered_today(s: Session, today: date | None = None) -> int:
    day = today or date.today()
    start = datetime.combine(day, time.min)
    return _repo(s).count(Customer.registered_at >= start, Customer.registered_at < start + timedelta(days=1))


def update_customer(s: Session, customer_id: int, patch: CustomerPatch) -> Customer:
    repo = _repo(s)
    customer = repo.find_by_id(customer_id)
    if customer is None:
        raise NotFoundError("Customer not found.")

    if patch.name:
        customer.name = patch.name

    if patch.email and patch.email != customer.email:
        _check_email_format(patch.email)
        if repo.exists_by("email", patch.email):
            raise ConflictError("A customer with this email already exists.")
        customer.email = patch.email

    if patch.phone is not None:
        customer.phone = patch.phone or None

    if patch.address is not None:
        customer.address = patch.address or None

    if patch.cpf and patch.cpf != customer.cpf:
        if repo.exists_by("cpf", patch.cpf):
            raise ConflictError("A customer with this CPF already exists.")
        customer.cpf = patch.cpf

    if patch.birth_date is not None:
        customer.birth_date = patch.birth_date

    repo.save(customer)
    logger.info("customer.update id=%s", customer.id)
    return customer


def delete_customer(s: Session, customer_id: int) -> None:
    repo = _repo(s)
    if not repo.exists_by_id(customer_id):
        raise NotFoundError("Customer not found.")
    repo.delete_by_id(customer_id)
    logger.info("customer.delete id=%s", customer_id)
