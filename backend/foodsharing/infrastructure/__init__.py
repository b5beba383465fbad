"""Infrastructure Layer — database session management and observability.

Invariants:
    - Infrastructure never imports from core/ domain logic except the error types
    - All SQLAlchemy failures mapped to DatabaseError
"""
