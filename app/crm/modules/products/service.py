from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy.orm import Session

from app.crm.errors import ConflictError, NotFoundError, ValidationError
from app.crm.modules.products.models import LOW_STOCK_THRESHOLD, Product
from app.crm.repository import Repository

logger = logging.getLogger(__name__)

# products.price is NUMERIC(10, 2).
CENT = Decimal("0.01")
PRICE_LIMIT = Decimal("100000000")


def _repo(s: Session) -> Repository[Product]:
    return Repository(s, Product)


def _text(value: Any) -> str | None:
    if value is None:
        return None
    return str(value).strip()


def parse_price(value: Any) -> Decimal | None:
    """
    Numbers or numeric strings -> Decimal. None/blank -> None.

    The value must fit the price column exactly: at most two decimal places
    and below PRICE_LIMIT. Anything else is rejected instead of being rounded.
    """
    if isinstance(value, bool):
        raise ValidationError("Price must be a number.")
    if value is None:
        return None
    if isinstance(value, Decimal):
        price = value
        raw = str(value)
    else:
        raw = str(value).strip()
        if not raw:
            return None
        try:
            price = Decimal(raw)
        except InvalidOperation as e:
            raise ValidationError(f"Invalid price {raw!r}.") from e
    if not price.is_finite():
        raise ValidationError(f"Invalid price {raw!r}.")
    if abs(price) >= PRICE_LIMIT:
        raise ValidationError(f"Price must be below {PRICE_LIMIT}.")
    if price != price.quantize(CENT):
        raise ValidationError("Price cannot have more than two decimal places.")
    return price


def parse_quantity(value: Any) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("Stock quantity must be an integer.")
    return value


@dataclass
class ProductPatch:
    name: str | None = None
    description: str | None = None
    price: Decimal | None = None
    stock_quantity: int | None = None
    category: str | None = None

    @classmethod
    def from_payload(cls, payload: dict) -> "ProductPatch":
        return cls(
            name=_text(payload.get("name")),
            description=_text(payload.get("description")),
            price=parse_price(payload.get("price")),
            stock_quantity=parse_quantity(payload.get("stock_quantity")),
            category=_text(payload.get("category")),
        )


def validate_product_payload(payload: dict) -> None:
    if not (_text(payload.get("name")) or ""):
        raise ValidationError("Product name is required.")
    price = parse_price(payload.get("price"))
    if price is None or price <= 0:
        raise ValidationError("Price must be greater than zero.")
    stock = parse_quantity(payload.get("stock_quantity"))
    if stock is None or stock < 0:
        raise ValidationError("Stock quantity must be zero or greater.")


def create_product(s: Session, payload: dict) -> Product:
    validate_product_payload(payload)
    repo = _repo(s)

    name = _text(payload.get("name")) or ""
    if repo.exists_by("name", name):
        raise ConflictError("A product with this name already exists.")

    product = Product(
        name=name,
        description=_text(payload.get("description")) or None,
        price=parse_price(payload.get("price")),
        stock_quantity=parse_quantity(payload.get("stock_quantity")),
        category=_text(payload.get("category")) or None,
    )
    repo.save(product)
    logger.info("product.create id=%s name=%s", product.id, product.name)
    return product


def get_product_by_id(s: Session, product_id: int) -> Product | None:
    return _repo(s).find_by_id(product_id)


def list_products(s: Session) -> list[Product]:
    return _repo(s).find_all()


def count_products(s: Session) -> int:
    return _repo(s).count()


def search_products_by_name(s: Session, text: str) -> list[Product]:
    return _repo(s).find_where(Product.name.icontains(text or "", autoescape=True))


def list_products_by_category(s: Session, category: str) -> list[Product]:
    return _repo(s).find_where(Product.category == category)


def list_low_stock_products(s: Session) -> list[Product]:
    return _repo(s).find_where(Product.stock_quantity < LOW_STOCK_THRESHOLD)


def count_low_stock_products(s: Session) -> int:
    return _repo(s).count(Product.stock_quantity < LOW_STOCK_THRESHOLD)


def list_products_by_price_range(s: Session, min_price: Decimal, max_price: Decimal) -> list[Product]:
    return _repo(s).find_where(Product.price.between(min_price, max_price))


def update_product(s: Session, product_id: int, patch: ProductPatch) -> Product:
    repo = _repo(s)
    product = repo.find_by_id(product_id)
    if product is None:
        raise NotFoundError("Product not found.")

    if patch.name and patch.name != product.name:
        if repo.exists_by("name", patch.name):
            raise ConflictError("A product with this name already exists.")
        product.name = patch.name

    if patch.description is not None:
        product.description = patch.description or None

    # Out-of-range values are ignored, not rejected. Unstorable prices still fail.
    price = parse_price(patch.price)
    if price is not None and price > 0:
        product.price = price

    if patch.stock_quantity is not None and patch.stock_quantity >= 0:
        product.stock_quantity = patch.stock_quantity

    if patch.category is not None:
        product.category = patch.category or None

    repo.save(product)
    logger.info("product.update id=%s", product.id)
    return product


def set_stock(s: Session, product_id: int, quantity: int) -> Product:
    if quantity < 0:
        raise ValidationError("Stock quantity cannot be negative.")
    repo = _repo(s)
    product = repo.find_by_id(product_id)
    if product is None:
        raise NotFoundError("Product not found.")
    product.stock_quantity = quantity
    repo.save(product)
    logger.info("product.set_stock id=%s quantity=%s", product.id, quantity)
    return product


def delete_product(s: Session, product_id: int) -> None:
    repo = _repo(s)
    if not repo.exists_by_id(product_id):
        raise NotFoundError("Product not found.")
    repo.delete_by_id(product_id)
    logger.info("product.delete id=%s", product_id)
