"""
Customers module.

- Customers CRUD (create, read, partial update, delete)
- Lookups by email / CPF, name and phone search
- Registration-window listing and "registered today" count (admin-only)
"""
