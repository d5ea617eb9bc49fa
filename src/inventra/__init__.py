"""
inventra

Injection-safe SQL composition, pagination and bulk mutation helpers for
the inventory and order backend, on top of psycopg.
"""
