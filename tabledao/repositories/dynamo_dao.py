"""
Base DAO for managing the CRUD operations of a DynamoDB table.

The constructor takes a table name prefix that overrides the model's default
table name. The prefix separates development from QA and production, and
developers from each other:

- QA_USERS (QA table)
- PRODUCTION_USERS (production table)
- BCLEMENZI_USERS, JOESMITH_USERS (per-developer tables)
"""

from __future__ import annotations

from typing import Any, TypeVar

from ..db.dynamodb.calls import ddb_call
from ..db.dynamodb.client import DynamoConnection, connect
from ..db.dynamodb.errors import DdbNotFound, DdbValidation
from ..db.dynamodb.mapper import ConsistentReads, DynamoMapper, MapperConfig, SaveBehavior
from ..db.dynamodb.models import DynamoModel, hash_key_is_string, hash_key_value
from ..db.dynamodb.naming import prefixed_table_name
from ..db.dynamodb.schema import ensure_table
from ..observability.logging import get_logger
from ..settings import Settings, get_settings, load_settings
from .base_repository import Repository

M = TypeVar("M", bound=DynamoModel)

_CONSISTENT = MapperConfig(consistent_reads=ConsistentReads.CONSISTENT)


class DynamoDao(Repository):
    def __init__(
        self,
        access_key: str | None,
        secret_key: str | None,
        region: str | None,
        table_name_prefix: str | None,
        base_table_name: str,
        primary_id: str,
        *,
        endpoint_url: str | None = None,
        auto_create: bool | None = None,
    ):
        self.log = get_logger(type(self).__name__)
        self._base_table_name = str(base_table_name or "")
        self._primary_id = str(primary_id or "")

        try:
            self._table_name = prefixed_table_name(table_name_prefix, base_table_name)
            if not self._primary_id.strip():
                raise DdbValidation(
                    message="primary_id is required",
                    operation="Config",
                    table_name=self._table_name,
                )

            self._connection: DynamoConnection = connect(
                access_key=access_key,
                secret_key=secret_key,
                region=region,
                endpoint_url=endpoint_url,
            )
            self.log.info("ddb_table_initializing", table_name=self._table_name)
            ensure_table(
                self._connection,
                table_name=self._table_name,
                hash_key=self._primary_id,
                auto_create=auto_create,
            )
        except Exception as e:
            self.log.error(
                "ddb_connection_failed",
                table_name=getattr(self, "_table_name", None),
                error=str(e),
                hint="check the host clock (ntp) and DNS",
            )
            raise

        self._mapper = DynamoMapper(self._connection)
        self._table_override = MapperConfig(table_name_override=self._table_name)

    @classmethod
    def from_settings(
        cls,
        *,
        base_table_name: str,
        primary_id: str,
        settings: Settings | None = None,
    ):
        s = settings or get_settings()
        return cls(
            table_name_prefix=s.default_table_prefix,
            base_table_name=base_table_name,
            primary_id=primary_id,
            access_key=s.aws_access_key_id,
            secret_key=s.aws_secret_access_key,
            region=s.aws_region,
            endpoint_url=s.ddb_endpoint_url,
            auto_create=s.ddb_auto_create_tables,
        )

    # --- table naming ---

    @property
    def table_name(self) -> str:
        return self._table_name

    @property
    def base_table_name(self) -> str:
        return self._base_table_name

    @property
    def primary_id(self) -> str:
        return self._primary_id

    def _config(self, *configs: MapperConfig) -> MapperConfig:
        # Table override is applied last so no per-call config can escape the prefix.
        return MapperConfig.compose(*configs, self._table_override)

    # --- CRUD ---

    def get(self, model_cls: type[M], id: Any) -> M | None:
        self._check_model(model_cls)
        key = {self._primary_id: id}
        return ddb_call(
            "GetItem",
            lambda: self._mapper.load(model_cls, id, self._config(_CONSISTENT)),
            table_name=self._table_name,
            key=key,
        )

    def get_required(self, model_cls: type[M], id: Any, *, message: str = "Item not found") -> M:
        obj = self.get(model_cls, id)
        if obj is None:
            raise DdbNotFound(
                message=message,
                operation="GetItem",
                table_name=self._table_name,
                key={self._primary_id: id},
            )
        return obj

    def create(self, model: DynamoModel) -> None:
        # Only the table override: the mapper default (UPDATE) keeps unmodeled attributes.
        cfg = self._config()
        ddb_call(
            "UpdateItem",
            lambda: self._mapper.save(model, cfg),
            table_name=self._table_name,
            key=self._key_of(model),
        )

    def update(self, model: DynamoModel) -> None:
        cfg = self._config(MapperConfig(save_behavior=SaveBehavior.UPDATE))
        ddb_call(
            "UpdateItem",
            lambda: self._mapper.save(model, cfg),
            table_name=self._table_name,
            key=self._key_of(model),
        )

    def delete(self, model: DynamoModel) -> None:
        cfg = self._config(_CONSISTENT)
        ddb_call(
            "DeleteItem",
            lambda: self._mapper.delete(model, cfg),
            table_name=self._table_name,
            key=self._key_of(model),
        )

    # --- scans ---

    def scan(
        self,
        model_cls: type[M],
        total_segments: int | None,
        column_name: str,
        value: str,
    ) -> list[M]:
        self._check_model(model_cls)
        col = str(column_name or "").strip()
        if not col:
            raise DdbValidation(
                message="column_name is required",
                operation="Scan",
                table_name=self._table_name,
            )
        segments = total_segments if total_segments is not None else load_settings().ddb_scan_total_segments

        return ddb_call(
            "Scan",
            lambda: self._mapper.parallel_scan(
                model_cls,
                total_segments=segments,
                filter_expression="#col = :val1",
                expression_attribute_names={"#col": col},
                expression_attribute_values={":val1": str(value)},
                config=self._config(_CONSISTENT),
            ),
            table_name=self._table_name,
        )

    def _key_of(self, model: DynamoModel) -> dict[str, Any]:
        self._check_model(type(model))
        return {self._primary_id: hash_key_value(model)}

    def _check_model(self, model_cls: type[DynamoModel]) -> None:
        if model_cls.ddb_hash_key != self._primary_id:
            raise DdbValidation(
                message=(
                    f"{model_cls.__name__}.ddb_hash_key is {model_cls.ddb_hash_key!r} "
                    f"but table {self._table_name} is keyed on {self._primary_id!r}"
                ),
                operation="Key",
                table_name=self._table_name,
            )
        # Tables are created with a string (S) hash key.
        if not hash_key_is_string(model_cls):
            raise DdbValidation(
                message=(
                    f"{model_cls.__name__}.{self._primary_id} must be declared as str "
                    f"to match the string hash key of {self._table_name}"
                ),
                operation="Key",
                table_name=self._table_name,
            )
