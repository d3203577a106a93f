"""Tests for the Customers module."""
from datetime import date, datetime, timedelta

import pytest
from werkzeug.security import generate_password_hash

from app.crm import create_app
from app.crm.auth import _login_attempts
from app.crm.db import session_scope
from app.crm.errors import ConflictError, NotFoundError, ValidationError
from app.crm.models import Base, Role, User
from app.crm.modules.customers.models import Customer
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
from app.crm.repository import Repository


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")

    _login_attempts.clear()
    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        r_user = Role(key="USER", name="User")
        r_admin = Role(key="ADMIN", name="Administrator")
        admin = User(email="admin@example.com", password_hash=generate_password_hash("pw"), is_active=True)
        admin.roles.extend([r_user, r_admin])
        user = User(email="user@example.com", password_hash=generate_password_hash("pw"), is_active=True)
        user.roles.append(r_user)
        s.add_all([r_user, r_admin, admin, user])

    return app


@pytest.fixture()
def s(app):
    session = app.extensions["sqlalchemy_sessionmaker"]()
    yield session
    session.close()


@pytest.fixture()
def client(app):
    return app.test_client()


def _auth(client, email: str) -> dict:
    r = client.post("/auth/login", json={"email": email, "password": "pw"})
    return {"Authorization": f"Bearer {r.json['access_token']}"}


# ---------- Service: create ----------
def test_create_assigns_id_and_registration_time(s):
    before = datetime.now()
    c = create_customer(s, {"name": "Ana", "email": "ana@x.com", "cpf": "123.456.789-00"})
    s.commit()
    assert c.id
    assert before <= c.registered_at <= datetime.now()
    assert c.cpf == "123.456.789-00"


@pytest.mark.parametrize(
    "payload",
    [
        {"name": "", "email": "ana@x.com"},
        {"name": "   ", "email": "ana@x.com"},
        {"email": "ana@x.com"},
        {"name": "Ana", "email": ""},
        {"name": "Ana"},
        {"name": "Ana", "email": "ana.x.com"},
        {"name": "Ana", "email": "ana.x.com", "cpf": "111", "phone": "555"},
    ],
)
def test_create_rejects_invalid_input(s, payload):
    with pytest.raises(ValidationError):
        create_customer(s, payload)


def test_create_rejects_invalid_birth_date(s):
    with pytest.raises(ValidationError):
        create_customer(s, {"name": "Ana", "email": "ana@x.com", "birth_date": "31/12/1990"})


def test_create_rejects_duplicate_email(s):
    create_customer(s, {"name": "Ana", "email": "ana@x.com"})
    s.commit()
    with pytest.raises(ConflictError):
        create_customer(s, {"name": "Other Ana", "email": "ana@x.com"})


def test_create_rejects_duplicate_cpf(s):
    create_customer(s, {"name": "Ana", "email": "ana@x.com", "cpf": "111"})
    s.commit()
    with pytest.raises(ConflictError):
        create_customer(s, {"name": "Bia", "email": "bia@x.com", "cpf": "111"})


def test_blank_cpf_is_stored_as_absent_and_never_collides(s):
    a = create_customer(s, {"name": "Ana", "email": "ana@x.com", "cpf": "  "})
    b = create_customer(s, {"name": "Bia", "email": "bia@x.com"})
    s.commit()
    assert a.cpf is None
    assert b.cpf is None


def test_storage_constraint_rejects_duplicate_when_precheck_misses(app, monkeypatch):
    sm = app.extensions["sqlalchemy_sessionmaker"]
    first, second = sm(), sm()
    try:
        create_customer(first, {"name": "Ana", "email": "ana@x.com"})
        first.commit()

        # Simulate the race: the second writer's existence check ran before the first commit.
        monkeypatch.setattr(Repository, "exists_by", lambda self, field, value: False)
        with pytest.raises(ConflictError):
            create_customer(second, {"name": "Ana 2", "email": "ana@x.com"})
    finally:
        first.close()
        second.close()

    with session_scope(app) as s:
        assert len(list_customers(s)) == 1


# ---------- Service: lookups ----------
def test_lookups_return_none_when_absent(s):
    assert get_customer_by_id(s, 999) is None
    assert get_customer_by_email(s, "nobody@x.com") is None
    assert get_customer_by_cpf(s, "000") is None


def test_lookup_by_email_and_cpf(s):
    c = create_customer(s, {"name": "Ana", "email": "ana@x.com", "cpf": "111"})
    s.commit()
    assert get_customer_by_email(s, "ana@x.com").id == c.id
    assert get_customer_by_cpf(s, "111").id == c.id


def test_search_by_name_is_case_insensitive_substring(s):
    create_customer(s, {"name": "Ana Souza", "email": "ana@x.com"})
    create_customer(s, {"name": "Mariana", "email": "mari@x.com"})
    create_customer(s, {"name": "Bruno", "email": "bruno@x.com"})
    s.commit()
    names = sorted(c.name for c in search_customers_by_name(s, "ANA"))
    assert names == ["Ana Souza", "Mariana"]


def test_search_by_phone_substring(s):
    create_customer(s, {"name": "Ana", "email": "ana@x.com", "phone": "+55 11 99999-0001"})
    create_customer(s, {"name": "Bia", "email": "bia@x.com", "phone": "+55 21 98888-0002"})
    create_customer(s, {"name": "Caio", "email": "caio@x.com"})
    s.commit()
    assert [c.name for c in search_customers_by_phone(s, "99999")] == ["Ana"]
    assert len(search_customers_by_phone(s, "+55")) == 2


def test_search_treats_wildcard_characters_literally(s):
    create_customer(s, {"name": "Ana", "email": "ana@x.com", "phone": "11 9999"})
    create_customer(s, {"name": "Bia", "email": "bia@x.com", "phone": "21 8888"})
    create_customer(s, {"name": "Jo_o", "email": "joao@x.com", "phone": "31 7777%"})
    s.commit()
    assert [c.name for c in search_customers_by_name(s, "_")] == ["Jo_o"]
    assert search_customers_by_name(s, "%") == []
    assert [c.name for c in search_customers_by_phone(s, "%")] == ["Jo_o"]
    assert search_customers_by_phone(s, "_") == []


def test_registration_window_is_inclusive(s):
    c = create_customer(s, {"name": "Ana", "email": "ana@x.com"})
    s.commit()
    at = c.registered_at
    assert [x.id for x in list_customers_registered_between(s, at, at)] == [c.id]
    assert list_customers_registered_between(s, at + timedelta(seconds=1), at + timedelta(days=1)) == []


def test_count_registered_today_moves_with_the_calendar(s):
    create_customer(s, {"name": "Ana", "email": "ana@x.com"})
    s.commit()
    today = date.today()
    assert count_customers_registered_today(s, today) == 1
    assert count_customers_registered_today(s) == 1
    assert count_customers_registered_today(s, today + timedelta(days=1)) == 0


def test_count_registered_today_excludes_older_rows(s):
    s.add(Customer(name="Old", email="old@x.com", registered_at=datetime.now() - timedelta(days=3)))
    create_customer(s, {"name": "New", "email": "new@x.com"})
    s.commit()
    assert count_customers_registered_today(s) == 1


# ---------- Service: update ----------
def test_update_phone_only_leaves_other_fields(s):
    c = create_customer(s, {"name": "Ana", "email": "ana@x.com", "cpf": "111", "address": "Rua A"})
    s.commit()
    updated = update_customer(s, c.id, CustomerPatch(phone="555-0101"))
    s.commit()
    assert updated.phone == "555-0101"
    assert (updated.name, updated.email, updated.cpf, updated.address) == ("Ana", "ana@x.com", "111", "Rua A")


def test_update_to_own_email_and_cpf_is_not_a_conflict(s):
    c = create_customer(s, {"name": "Ana", "email": "ana@x.com", "cpf": "111"})
    s.commit()
    updated = update_customer(s, c.id, CustomerPatch(email="ana@x.com", cpf="111", name="Ana Maria"))
    assert updated.name == "Ana Maria"


def test_update_to_taken_email_conflicts(s):
    create_customer(s, {"name": "Ana", "email": "ana@x.com"})
    bia = create_customer(s, {"name": "Bia", "email": "bia@x.com"})
    s.commit()
    with pytest.raises(ConflictError):
        update_customer(s, bia.id, CustomerPatch(email="ana@x.com"))


def test_update_to_taken_cpf_conflicts(s):
    create_customer(s, {"name": "Ana", "email": "ana@x.com", "cpf": "111"})
    bia = create_customer(s, {"name": "Bia", "email": "bia@x.com"})
    s.commit()
    with pytest.raises(ConflictError):
        update_customer(s, bia.id, CustomerPatch(cpf="111"))


def test_update_sets_cpf_when_previously_absent(s):
    c = create_customer(s, {"name": "Ana", "email": "ana@x.com"})
    s.commit()
    assert update_customer(s, c.id, CustomerPatch(cpf="222")).cpf == "222"


def test_update_rejects_changed_email_without_at(s):
    c = create_customer(s, {"name": "Ana", "email": "ana@x.com"})
    s.commit()
    with pytest.raises(ValidationError):
        update_customer(s, c.id, CustomerPatch(email="ana.example.com"))


def test_update_ignores_blank_name_and_email(s):
    c = create_customer(s, {"name": "Ana", "email": "ana@x.com"})
    s.commit()
    updated = update_customer(s, c.id, CustomerPatch.from_payload({"name": "  ", "email": ""}))
    assert (updated.name, updated.email) == ("Ana", "ana@x.com")


def test_update_never_touches_registration_time(s):
    c = create_customer(s, {"name": "Ana", "email": "ana@x.com"})
    s.commit()
    registered_at = c.registered_at
    patch = CustomerPatch.from_payload({"registered_at": "2000-01-01T00:00:00", "birth_date": "1990-05-17"})
    updated = update_customer(s, c.id, patch)
    assert updated.registered_at == registered_at
    assert updated.birth_date == date(1990, 5, 17)


def test_update_missing_customer_raises_not_found(s):
    with pytest.raises(NotFoundError):
        update_customer(s, 404, CustomerPatch(name="x"))


# ---------- Service: delete ----------
def test_delete_then_lookup_is_absent(s):
    c = create_customer(s, {"name": "Ana", "email": "ana@x.com"})
    s.commit()
    delete_customer(s, c.id)
    s.commit()
    assert get_customer_by_id(s, c.id) is None


def test_delete_missing_customer_raises_not_found(s):
    with pytest.raises(NotFoundError):
        delete_customer(s, 404)


# ---------- API ----------
def test_api_requires_token(client):
    assert client.get("/api/customers").status_code == 401


def test_api_crud_flow(client):
    h = _auth(client, "user@example.com")

    r = client.post("/api/customers", json={"name": "Ana", "email": "ana@x.com", "cpf": "111"}, headers=h)
    assert r.status_code == 201
    cid = r.json["id"]
    assert r.json["registered_at"]

    r = client.get(f"/api/customers/{cid}", headers=h)
    assert r.status_code == 200
    assert r.json["email"] == "ana@x.com"

    r = client.put(f"/api/customers/{cid}", json={"phone": "555"}, headers=h)
    assert r.status_code == 200
    assert r.json["phone"] == "555"
    assert r.json["name"] == "Ana"

    assert client.get("/api/customers/email/ana@x.com", headers=h).json["id"] == cid
    assert client.get("/api/customers/cpf/111", headers=h).json["id"] == cid
    assert [c["id"] for c in client.get("/api/customers/search?name=an", headers=h).json] == [cid]
    assert [c["id"] for c in client.get("/api/customers/phone?phone=55", headers=h).json] == [cid]
    assert len(client.get("/api/customers", headers=h).json) == 1


def test_api_maps_errors_to_status_codes(client):
    h = _auth(client, "user@example.com")
    r = client.post("/api/customers", json={"name": "Ana", "email": "nope"}, headers=h)
    assert r.status_code == 400
    assert r.json["error"] == "validation_error"

    client.post("/api/customers", json={"name": "Ana", "email": "ana@x.com"}, headers=h)
    r = client.post("/api/customers", json={"name": "Ana", "email": "ana@x.com"}, headers=h)
    assert r.status_code == 400
    assert r.json["error"] == "conflict"

    assert client.get("/api/customers/999", headers=h).status_code == 404
    assert client.get("/api/customers/email/none@x.com", headers=h).status_code == 404
    assert client.put("/api/customers/999", json={"name": "x"}, headers=h).status_code == 404
    assert client.post("/api/customers", data="not json", headers=h).status_code == 400


def test_api_delete_is_admin_only(client):
    user_h = _auth(client, "user@example.com")
    admin_h = _auth(client, "admin@example.com")
    cid = client.post("/api/customers", json={"name": "Ana", "email": "ana@x.com"}, headers=user_h).json["id"]

    assert client.delete(f"/api/customers/{cid}", headers=user_h).status_code == 403
    assert client.delete(f"/api/customers/{cid}", headers=admin_h).status_code == 204
    assert client.delete(f"/api/customers/{cid}", headers=admin_h).status_code == 404
    assert client.get(f"/api/customers/{cid}", headers=admin_h).status_code == 404


def test_api_admin_reports(client):
    user_h = _auth(client, "user@example.com")
    admin_h = _auth(client, "admin@example.com")
    client.post("/api/customers", json={"name": "Ana", "email": "ana@x.com"}, headers=user_h)

    assert client.get("/api/customers/stats/registered-today", headers=user_h).status_code == 403
    r = client.get("/api/customers/stats/registered-today", headers=admin_h)
    assert r.status_code == 200
    assert r.json["registered_today"] == 1

    start = (datetime.now() - timedelta(hours=1)).isoformat()
    end = (datetime.now() + timedelta(hours=1)).isoformat()
    assert client.get("/api/customers/period", query_string={"start": start, "end": end}, headers=user_h).status_code == 403
    r = client.get("/api/customers/period", query_string={"start": start, "end": end}, headers=admin_h)
    assert r.status_code == 200
    assert len(r.json) == 1

    r = client.get("/api/customers/period", query_string={"start": "yesterday", "end": end}, headers=admin_h)
    assert r.status_code == 400
