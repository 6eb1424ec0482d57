"""
Store operations consumed by the fetch and classification pipeline.

Each function takes an open AsyncSession; callers own the transaction.
"""
