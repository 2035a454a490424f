"""
Repositories package - Data access layer.

This package contains the binder slot map and the repository classes that
persist binders and read set card lists, isolating the placement logic from
data access details.
"""

from repositories.binder_repository import (
    BinderRepository,
    InMemoryBinderRepository,
    MongoBinderRepository,
    get_binder_repository,
)
from repositories.card_data_repository import CardDataRepository, get_card_data_repository
from repositories.position_store import PositionStore

__all__ = [
    "BinderRepository",
    "CardDataRepository",
    "InMemoryBinderRepository",
    "MongoBinderRepository",
    "PositionStore",
    "get_binder_repository",
    "get_card_data_repository",
]
