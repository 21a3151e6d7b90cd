from __future__ import annotations

from decimal import Decimal
from enum import Enum
from types import UnionType
from typing import Any, ClassVar, TypeVar, Union, get_args, get_origin

from pydantic import BaseModel, ConfigDict
from pydantic_core import to_jsonable_python

from .errors import DdbValidation

M = TypeVar("M", bound="DynamoModel")


class DynamoModel(BaseModel):
    """
    Base for objects stored as DynamoDB items.

    ``ddb_table_name`` is the default (unprefixed) table; DAOs override it with
    their environment-prefixed name. ``ddb_hash_key`` names the hash key field.
    """

    model_config = ConfigDict(extra="ignore")

    ddb_table_name: ClassVar[str | None] = None
    ddb_hash_key: ClassVar[str] = "id"


def _to_dynamo_value(v: Any) -> Any:
    # boto3's serializer rejects floats; numbers go over the wire as Decimal.
    if isinstance(v, bool):
        return v
    if isinstance(v, Enum):
        return to_jsonable_python(v)
    if isinstance(v, float):
        return Decimal(str(v))
    if isinstance(v, dict):
        return {k: _to_dynamo_value(x) for k, x in v.items() if x is not None}
    if isinstance(v, (list, tuple, set, frozenset)):
        return [_to_dynamo_value(x) for x in v]
    if v is None or isinstance(v, (str, int, Decimal, bytes)):
        return v
    # datetimes, enums, UUIDs...: same representation as a JSON dump.
    return to_jsonable_python(v)


def _from_dynamo_value(v: Any) -> Any:
    if isinstance(v, Decimal):
        return int(v) if v == v.to_integral_value() else float(v)
    if isinstance(v, dict):
        return {k: _from_dynamo_value(x) for k, x in v.items()}
    if isinstance(v, (list, set)):
        return [_from_dynamo_value(x) for x in v]
    return v


def to_item(model: DynamoModel, *, include_none: bool = False) -> dict[str, Any]:
    # Python mode keeps Decimal numeric; only non-DynamoDB types are converted.
    raw = model.model_dump()
    return {
        k: _to_dynamo_value(v)
        for k, v in raw.items()
        if include_none or v is not None
    }


def from_item(model_cls: type[M], item: dict[str, Any]) -> M:
    return model_cls.model_validate({k: _from_dynamo_value(v) for k, v in item.items()})


def hash_key_value(model: DynamoModel) -> Any:
    name = type(model).ddb_hash_key
    value = getattr(model, name, None)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise DdbValidation(
            message=f"{type(model).__name__}.{name} (hash key) is required",
            operation="Key",
        )
    return value


def key_for(model_cls: type[DynamoModel], value: Any) -> dict[str, Any]:
    return {model_cls.ddb_hash_key: value}


def hash_key_is_string(model_cls: type[DynamoModel]) -> bool:
    field = model_cls.model_fields.get(model_cls.ddb_hash_key)
    if field is None:
        return False
    ann = field.annotation
    if ann is str:
        return True
    # Optional[str] / str | None
    if get_origin(ann) not in (Union, UnionType):
        return False
    args = [a for a in get_args(ann) if a is not type(None)]
    return bool(args) and all(a is str for a in args)
