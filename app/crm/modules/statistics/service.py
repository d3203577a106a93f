from __future__ import annotations

import time
from datetime import date

from sqlalchemy.orm import Session

from app.crm.modules.customers.service import count_customers, count_customers_registered_today
from app.crm.modules.products.service import count_low_stock_products, count_products


def dashboard(s: Session, today: date | None = None) -> dict:
    """Nested counts plus generation time (epoch millis). Recomputed on every call."""
    return {
        "customers": {
            "total": count_customers(s),
            "registered_today": count_customers_registered_today(s, today),
        },
        "products": {
            "total": count_products(s),
            "low_stock": count_low_stock_products(s),
        },
        "timestamp": int(time.time() * 1000),
    }


def summary(s: Session, today: date | None = None) -> dict:
    return {
        "total_customers": count_customers(s),
        "total_products": count_products(s),
        "low_stock_products": count_low_stock_products(s),
        "customers_registered_today": count_customers_registered_today(s, today),
    }
