"""Services Layer — store-backed implementations of the core's boundary protocols.

Invariants:
    - Every store call runs inside store_operation(): failures surface as DatabaseError
    - Status changes derive their WHERE clause from core/file_lifecycle.py

Design Decisions:
    - One file per concern: authorization, groups, file store, upload service, claim queue, worker
"""
