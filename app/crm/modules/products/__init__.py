"""
Products module.

- Products CRUD with unique names, positive prices and non-negative stock
- Category / price-range / low-stock queries
- Direct stock overwrite (admin-only)
"""
