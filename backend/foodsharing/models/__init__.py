"""ORM Models — SQLAlchemy declarative models for the permission and upload core.

Invariants:
    - All models inherit from Base (db/base.py)
    - users_to_groups has no mapped class: the pair is its whole payload

Design Decisions:
    - One file per entity for locality
    - All models imported here so Base.metadata is complete before create_all / autogenerate
"""

from foodsharing.models.user import User  # noqa: F401
from foodsharing.models.group import Group, users_to_groups  # noqa: F401
from foodsharing.models.file import FileRecord  # noqa: F401
