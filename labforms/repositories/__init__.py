"""Repository layer for database access.

Repositories flush but never commit; the caller owns the transaction.
"""
