"""DynamoDB data-access objects with environment-prefixed table names."""

from __future__ import annotations

from .db.dynamodb.errors import DdbError
from .db.dynamodb.models import DynamoModel
from .repositories.dynamo_dao import DynamoDao

__all__ = ["DdbError", "DynamoDao", "DynamoModel"]
