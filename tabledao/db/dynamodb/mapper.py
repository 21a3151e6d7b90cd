from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, TypeVar

from boto3.dynamodb.types import TypeDeserializer, TypeSerializer

from .client import DynamoConnection
from .errors import DdbConfigError, DdbValidation
from .models import DynamoModel, from_item, hash_key_value, key_for, to_item

M = TypeVar("M", bound=DynamoModel)

_serializer = TypeSerializer()
_deserializer = TypeDeserializer()

# Threads per parallel scan; segments beyond this queue on the pool.
_MAX_SCAN_WORKERS = 16


class SaveBehavior(str, Enum):
    # Update modeled attributes; attributes set to None are removed.
    UPDATE = "UPDATE"
    # Update modeled attributes; None values are left alone.
    UPDATE_SKIP_NULL_ATTRIBUTES = "UPDATE_SKIP_NULL_ATTRIBUTES"
    # Replace the whole item, dropping unmodeled attributes.
    CLOBBER = "CLOBBER"


class ConsistentReads(str, Enum):
    CONSISTENT = "CONSISTENT"
    EVENTUAL = "EVENTUAL"


@dataclass(frozen=True, slots=True)
class MapperConfig:
    """Per-call mapper options. ``None`` means "inherit"."""

    save_behavior: SaveBehavior | None = None
    consistent_reads: ConsistentReads | None = None
    table_name_override: str | None = None

    def merged_with(self, overrides: MapperConfig | None) -> MapperConfig:
        if overrides is None:
            return self
        values = {}
        for f in fields(self):
            ov = getattr(overrides, f.name)
            values[f.name] = ov if ov is not None else getattr(self, f.name)
        return MapperConfig(**values)

    @classmethod
    def compose(cls, *configs: MapperConfig | None) -> MapperConfig:
        out = cls()
        for c in configs:
            out = out.merged_with(c)
        return out

    @property
    def resolved_save_behavior(self) -> SaveBehavior:
        return self.save_behavior or SaveBehavior.UPDATE

    @property
    def consistent_read(self) -> bool:
        return self.consistent_reads == ConsistentReads.CONSISTENT


DEFAULT_CONFIG = MapperConfig(
    save_behavior=SaveBehavior.UPDATE,
    consistent_reads=ConsistentReads.EVENTUAL,
)


def _serialize(values: dict[str, Any]) -> dict[str, Any]:
    return {k: _serializer.serialize(v) for k, v in values.items()}


def _deserialize(item: dict[str, Any]) -> dict[str, Any]:
    return {k: _deserializer.deserialize(v) for k, v in item.items()}


class DynamoMapper:
    """
    Maps DynamoModel instances to items of a table.

    Every operation takes an optional MapperConfig which is merged over the
    mapper's own config for that call only.
    """

    def __init__(self, connection: DynamoConnection, config: MapperConfig = DEFAULT_CONFIG):
        self._connection = connection
        self.config = config

    def _effective(self, config: MapperConfig | None) -> MapperConfig:
        return self.config.merged_with(config)

    def table_name_for(self, model_cls: type[DynamoModel], config: MapperConfig | None = None) -> str:
        cfg = self._effective(config)
        name = cfg.table_name_override or model_cls.ddb_table_name
        if not name:
            raise DdbConfigError(
                message=f"No table name for {model_cls.__name__}; set ddb_table_name or a table override",
                operation="Config",
            )
        return name

    # --- basic operations ---

    def load(
        self,
        model_cls: type[M],
        hash_key: Any,
        config: MapperConfig | None = None,
    ) -> M | None:
        cfg = self._effective(config)
        table = self._connection.table(self.table_name_for(model_cls, cfg))
        resp = table.get_item(Key=key_for(model_cls, hash_key), ConsistentRead=cfg.consistent_read)
        item = resp.get("Item")
        if not item:
            return None
        return from_item(model_cls, item)

    def save(self, model: DynamoModel, config: MapperConfig | None = None) -> None:
        cfg = self._effective(config)
        model_cls = type(model)
        table = self._connection.table(self.table_name_for(model_cls, cfg))
        behavior = cfg.resolved_save_behavior
        key_value = hash_key_value(model)

        if behavior == SaveBehavior.CLOBBER:
            table.put_item(Item=to_item(model))
            return

        attrs = to_item(model, include_none=True)
        attrs.pop(model_cls.ddb_hash_key, None)

        sets: list[str] = []
        removes: list[str] = []
        names: dict[str, str] = {}
        values: dict[str, Any] = {}
        for i, (name, value) in enumerate(sorted(attrs.items())):
            if value is None:
                if behavior == SaveBehavior.UPDATE:
                    names[f"#a{i}"] = name
                    removes.append(f"#a{i}")
                continue
            names[f"#a{i}"] = name
            values[f":v{i}"] = value
            sets.append(f"#a{i} = :v{i}")

        kwargs: dict[str, Any] = {"Key": key_for(model_cls, key_value)}
        clauses: list[str] = []
        if sets:
            clauses.append("SET " + ", ".join(sets))
        if removes:
            clauses.append("REMOVE " + ", ".join(removes))
        # A bare key still upserts the item.
        if clauses:
            kwargs["UpdateExpression"] = " ".join(clauses)
            kwargs["ExpressionAttributeNames"] = names
        if values:
            kwargs["ExpressionAttributeValues"] = values
        table.update_item(**kwargs)

    def delete(self, model: DynamoModel, config: MapperConfig | None = None) -> None:
        cfg = self._effective(config)
        model_cls = type(model)
        table = self._connection.table(self.table_name_for(model_cls, cfg))
        table.delete_item(Key=key_for(model_cls, hash_key_value(model)))

    # --- scans ---

    def _scan_segment(self, kwargs: dict[str, Any], segment: int) -> list[dict[str, Any]]:
        client = self._connection.client
        items: list[dict[str, Any]] = []
        req = {**kwargs, "Segment": segment}
        while True:
            resp = client.scan(**req)
            items.extend(_deserialize(it) for it in resp.get("Items") or [])
            lek = resp.get("LastEvaluatedKey")
            if not lek:
                return items
            req["ExclusiveStartKey"] = lek

    def parallel_scan(
        self,
        model_cls: type[M],
        *,
        total_segments: int,
        filter_expression: str | None = None,
        expression_attribute_names: dict[str, str] | None = None,
        expression_attribute_values: dict[str, Any] | None = None,
        config: MapperConfig | None = None,
    ) -> list[M]:
        try:
            segments = int(total_segments)
        except (TypeError, ValueError):
            segments = 0
        if segments < 1:
            raise DdbValidation(
                message="total_segments must be a positive integer",
                operation="Scan",
            )

        cfg = self._effective(config)
        kwargs: dict[str, Any] = {
            "TableName": self.table_name_for(model_cls, cfg),
            "TotalSegments": segments,
            "ConsistentRead": cfg.consistent_read,
        }
        if filter_expression:
            kwargs["FilterExpression"] = filter_expression
        if expression_attribute_names:
            kwargs["ExpressionAttributeNames"] = expression_attribute_names
        if expression_attribute_values:
            kwargs["ExpressionAttributeValues"] = _serialize(expression_attribute_values)

        if segments == 1:
            rows = self._scan_segment(kwargs, 0)
        else:
            with ThreadPoolExecutor(max_workers=min(_MAX_SCAN_WORKERS, segments)) as ex:
                futures = [ex.submit(self._scan_segment, kwargs, seg) for seg in range(segments)]
                rows = [row for fut in futures for row in fut.result()]

        return [from_item(model_cls, row) for row in rows]
