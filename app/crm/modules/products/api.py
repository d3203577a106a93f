from __future__ import annotations

from flask import Blueprint, jsonify

from app.crm.db import db_session
from app.crm.modules.products.service import (
    ProductPatch,
    create_product,
    delete_product,
    get_product_by_id,
    list_low_stock_products,
    list_products,
    list_products_by_category,
    list_products_by_price_range,
    search_products_by_name,
    set_stock,
    update_product,
)
from app.crm.rbac import require_operation
from app.crm.utils import decimal_arg, int_arg, json_payload, required_arg

bp = Blueprint("products", __name__)


def _many(products):
    return jsonify([p.to_dict() for p in products])


# ---------- CRUD ----------
@bp.post("/products")
@require_operation("products.create")
def products_create():
    s = db_session()
    product = create_product(s, json_payload())
    s.commit()
    return jsonify(product.to_dict()), 201


@bp.get("/products")
@require_operation("products.list")
def products_list():
    return _many(list_products(db_session()))


@bp.get("/products/<int:product_id>")
@require_operation("products.get")
def products_get(product_id: int):
    product = get_product_by_id(db_session(), product_id)
    if product is None:
        return jsonify({"error": "not_found", "message": "Product not found."}), 404
    return jsonify(product.to_dict())


@bp.put("/products/<int:product_id>")
@require_operation("products.update")
def products_update(product_id: int):
    s = db_session()
    product = update_product(s, product_id, ProductPatch.from_payload(json_payload()))
    s.commit()
    return jsonify(product.to_dict())


@bp.delete("/products/<int:product_id>")
@require_operation("products.delete")
def products_delete(product_id: int):
    s = db_session()
    delete_product(s, product_id)
    s.commit()
    return "", 204


# ---------- Queries ----------
@bp.get("/products/search")
@require_operation("products.search_name")
def products_search_name():
    return _many(search_products_by_name(db_session(), required_arg("name")))


@bp.get("/products/category/<category>")
@require_operation("products.by_category")
def products_by_category(category: str):
    return _many(list_products_by_category(db_session(), category))


@bp.get("/products/low-stock")
@require_operation("products.low_stock")
def products_low_stock():
    return _many(list_low_stock_products(db_session()))


@bp.get("/products/price")
@require_operation("products.price_range")
def products_price_range():
    return _many(list_products_by_price_range(db_session(), decimal_arg("min"), decimal_arg("max")))


# ---------- Stock (admin) ----------
@bp.patch("/products/<int:product_id>/stock")
@require_operation("products.set_stock")
def products_set_stock(product_id: int):
    s = db_session()
    product = set_stock(s, product_id, int_arg("quantity"))
    s.commit()
    return jsonify(product.to_dict())
