"""
Statistics module (admin-only): read-side counts over customers and products.
"""
