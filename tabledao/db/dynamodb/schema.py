from __future__ import annotations

from typing import Any

from botocore.exceptions import ClientError

from ...observability.logging import get_logger
from ...settings import load_settings
from .calls import ddb_call
from .client import DynamoConnection
from .errors import DdbTableNotFound

log = get_logger("dynamodb_schema")


def _table_exists(connection: DynamoConnection, table_name: str) -> bool:
    def _op():
        try:
            connection.client.describe_table(TableName=table_name)
        except ClientError as e:
            code = (e.response or {}).get("Error", {}).get("Code")
            if code == "ResourceNotFoundException":
                return False
            raise
        return True

    return ddb_call("DescribeTable", _op, table_name=table_name)


def ensure_table(
    connection: DynamoConnection,
    *,
    table_name: str,
    hash_key: str,
    read_capacity_units: int | None = None,
    write_capacity_units: int | None = None,
    auto_create: bool | None = None,
) -> bool:
    """
    Make sure ``table_name`` exists, creating it with a single string hash key.

    Returns True when the table was created, False when it already existed.
    """
    s = load_settings()
    create = s.ddb_auto_create_tables if auto_create is None else bool(auto_create)

    if _table_exists(connection, table_name):
        return False

    if not create:
        raise DdbTableNotFound(
            message=f"DynamoDB table {table_name} does not exist and auto-creation is disabled",
            operation="DescribeTable",
            table_name=table_name,
        )

    rcu = read_capacity_units if read_capacity_units is not None else s.ddb_read_capacity_units
    wcu = write_capacity_units if write_capacity_units is not None else s.ddb_write_capacity_units

    kwargs: dict[str, Any] = {
        "TableName": table_name,
        "KeySchema": [{"AttributeName": hash_key, "KeyType": "HASH"}],
        "AttributeDefinitions": [{"AttributeName": hash_key, "AttributeType": "S"}],
    }
    if rcu or wcu:
        kwargs["BillingMode"] = "PROVISIONED"
        kwargs["ProvisionedThroughput"] = {
            "ReadCapacityUnits": int(rcu or 1),
            "WriteCapacityUnits": int(wcu or 1),
        }
    else:
        kwargs["BillingMode"] = "PAY_PER_REQUEST"

    def _op():
        connection.client.create_table(**kwargs)
        connection.client.get_waiter("table_exists").wait(TableName=table_name)

    ddb_call("CreateTable", _op, table_name=table_name)
    log.info(
        "ddb_table_created",
        table_name=table_name,
        hash_key=hash_key,
        billing_mode=kwargs["BillingMode"],
    )
    return True
