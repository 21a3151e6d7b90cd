from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Any

import boto3
from botocore.config import Config

from ...settings import load_settings


@lru_cache(maxsize=1)
def botocore_config() -> Config:
    # botocore owns retries (adaptive mode); there is no app-layer retry on top.
    s = load_settings()
    return Config(
        retries={"max_attempts": int(s.ddb_max_attempts), "mode": "adaptive"},
        connect_timeout=s.ddb_connect_timeout_s,
        read_timeout=s.ddb_read_timeout_s,
    )


@dataclass(frozen=True, slots=True)
class DynamoConnection:
    resource: Any
    # Plain low-level client: AttributeValue-shaped requests/responses, thread-safe.
    client: Any
    region_name: str | None

    def table(self, table_name: str):
        return self.resource.Table(table_name)


def connect(
    *,
    access_key: str | None = None,
    secret_key: str | None = None,
    region: str | None = None,
    endpoint_url: str | None = None,
) -> DynamoConnection:
    s = load_settings()

    session = boto3.session.Session(
        aws_access_key_id=access_key or s.aws_access_key_id,
        aws_secret_access_key=secret_key or s.aws_secret_access_key,
        region_name=region or s.aws_region,
    )

    kwargs: dict[str, Any] = {"config": botocore_config()}
    endpoint = endpoint_url or s.ddb_endpoint_url
    if endpoint:
        kwargs["endpoint_url"] = endpoint

    return DynamoConnection(
        resource=session.resource("dynamodb", **kwargs),
        client=session.client("dynamodb", **kwargs),
        region_name=session.region_name,
    )
