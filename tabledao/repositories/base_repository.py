"""
Base repository interface.

All DAOs should implement this interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, TypeVar

from ..db.dynamodb.models import DynamoModel

M = TypeVar("M", bound=DynamoModel)


class Repository(ABC):
    """Base repository interface."""

    @abstractmethod
    def get(self, model_cls: type[M], id: Any) -> M | None:
        """Get an entity by its hash key."""

    @abstractmethod
    def create(self, model: DynamoModel) -> None:
        """Store a new entity."""

    @abstractmethod
    def update(self, model: DynamoModel) -> None:
        """Update an existing entity."""

    @abstractmethod
    def delete(self, model: DynamoModel) -> None:
        """Delete an entity."""

    @abstractmethod
    def scan(self, model_cls: type[M], total_segments: int, column_name: str, value: str) -> list[M]:
        """List entities whose ``column_name`` equals ``value``."""
