from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError
from structlog.testing import capture_logs

from tabledao import DynamoDao, DynamoModel


class User(DynamoModel):
    ddb_table_name = "USERS"
    ddb_hash_key = "user_id"

    user_id: str
    email: str
    role: str = "member"
    score: float | None = None
    nickname: str | None = None
    created_at: datetime | None = None


class UsersDao(DynamoDao):
    def __init__(self, *, table_name_prefix: str | None = "QA", **kwargs: Any):
        super().__init__(
            table_name_prefix=table_name_prefix,
            base_table_name="USERS",
            primary_id="user_id",
            access_key="testing",
            secret_key="testing",
            region="us-east-1",
            **kwargs,
        )


@pytest.fixture()
def dao(aws_setup):
    return UsersDao()


def _raw_item(dynamodb_resource, table_name: str, user_id: str) -> dict[str, Any] | None:
    return dynamodb_resource.Table(table_name).get_item(Key={"user_id": user_id}).get("Item")


def test_init_creates_prefixed_table(aws_setup, dynamodb_resource):
    with capture_logs() as logs:
        dao = UsersDao(table_name_prefix="BCLEMENZI")

    assert dao.table_name == "BCLEMENZI_USERS"
    assert dao.base_table_name == "USERS"
    assert dao.primary_id == "user_id"

    desc = dynamodb_resource.meta.client.describe_table(TableName="BCLEMENZI_USERS")["Table"]
    assert desc["KeySchema"] == [{"AttributeName": "user_id", "KeyType": "HASH"}]
    assert desc["BillingModeSummary"]["BillingMode"] == "PAY_PER_REQUEST"

    events = [e["event"] for e in logs]
    assert "ddb_table_initializing" in events
    assert "ddb_table_created" in events


def test_init_reuses_existing_table(aws_setup):
    UsersDao()
    with capture_logs() as logs:
        UsersDao()
    assert "ddb_table_created" not in [e["event"] for e in logs]


def test_init_with_provisioned_capacity(aws_setup, dynamodb_resource, monkeypatch):
    from tabledao.settings import load_settings

    monkeypatch.setenv("DDB_READ_CAPACITY_UNITS", "5")
    monkeypatch.setenv("DDB_WRITE_CAPACITY_UNITS", "2")
    load_settings.cache_clear()

    UsersDao(table_name_prefix="PRODUCTION")
    desc = dynamodb_resource.meta.client.describe_table(TableName="PRODUCTION_USERS")["Table"]
    assert desc["ProvisionedThroughput"]["ReadCapacityUnits"] == 5
    assert desc["ProvisionedThroughput"]["WriteCapacityUnits"] == 2


def test_init_without_prefix_fails_and_logs(aws_setup):
    from tabledao.db.dynamodb.errors import DdbConfigError

    with capture_logs() as logs:
        with pytest.raises(DdbConfigError):
            UsersDao(table_name_prefix="")
    failed = [e for e in logs if e["event"] == "ddb_connection_failed"]
    assert len(failed) == 1
    assert failed[0]["log_level"] == "error"


def test_init_missing_table_without_auto_create(aws_setup):
    from tabledao.db.dynamodb.errors import DdbTableNotFound

    with pytest.raises(DdbTableNotFound):
        UsersDao(auto_create=False)


def test_from_settings_uses_prefix(aws_setup, monkeypatch):
    from tabledao.settings import load_settings

    monkeypatch.setenv("DDB_TABLE_PREFIX", "JOESMITH")
    load_settings.cache_clear()

    dao = DynamoDao.from_settings(base_table_name="USERS", primary_id="user_id")
    assert dao.table_name == "JOESMITH_USERS"


def test_from_settings_in_qa_defaults_to_environment_prefix(aws_setup, monkeypatch):
    from tabledao.settings import load_settings

    monkeypatch.setenv("APP_ENV", "qa")
    load_settings.cache_clear()

    dao = DynamoDao.from_settings(base_table_name="USERS", primary_id="user_id")
    assert dao.table_name == "QA_USERS"


def test_create_and_get_round_trip(dao, dynamodb_resource):
    created = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    dao.create(User(user_id="u1", email="a@example.com", score=9.5, created_at=created))

    raw = _raw_item(dynamodb_resource, "QA_USERS", "u1")
    assert raw is not None
    assert "nickname" not in raw

    got = dao.get(User, "u1")
    assert got == User(user_id="u1", email="a@example.com", score=9.5, created_at=created)


def test_get_missing_returns_none(dao):
    assert dao.get(User, "nope") is None


def test_get_required_raises_not_found(dao):
    from tabledao.db.dynamodb.errors import DdbNotFound

    with pytest.raises(DdbNotFound) as ei:
        dao.get_required(User, "nope")
    assert ei.value.table_name == "QA_USERS"
    assert ei.value.key == {"user_id": "nope"}


def test_writes_never_touch_the_unprefixed_table(dao, dynamodb_resource):
    dao.create(User(user_id="u1", email="a@example.com"))
    names = dynamodb_resource.meta.client.list_tables()["TableNames"]
    assert names == ["QA_USERS"]


def test_create_over_existing_item_keeps_unmodeled_attributes(dao, dynamodb_resource):
    dynamodb_resource.Table("QA_USERS").put_item(
        Item={"user_id": "u1", "email": "old@example.com", "legacy": "x"}
    )
    dao.create(User(user_id="u1", email="new@example.com"))

    raw = _raw_item(dynamodb_resource, "QA_USERS", "u1")
    assert raw["email"] == "new@example.com"
    assert raw["legacy"] == "x"


def test_update_keeps_unmodeled_and_removes_null_attributes(dao, dynamodb_resource):
    dynamodb_resource.Table("QA_USERS").put_item(
        Item={"user_id": "u1", "email": "a@example.com", "nickname": "al", "legacy": "kept"}
    )
    dao.update(User(user_id="u1", email="b@example.com", role="admin"))

    raw = _raw_item(dynamodb_resource, "QA_USERS", "u1")
    assert raw["email"] == "b@example.com"
    assert raw["role"] == "admin"
    assert raw["legacy"] == "kept"
    assert "nickname" not in raw


def test_update_creates_missing_item(dao):
    dao.update(User(user_id="u2", email="c@example.com"))
    assert dao.get(User, "u2").email == "c@example.com"


def test_delete(dao):
    user = User(user_id="u1", email="a@example.com")
    dao.create(user)
    dao.delete(user)
    assert dao.get(User, "u1") is None


def test_model_keyed_differently_is_rejected(dao):
    from tabledao.db.dynamodb.errors import DdbValidation

    class Other(DynamoModel):
        id: str

    with pytest.raises(DdbValidation):
        dao.create(Other(id="x"))
    with pytest.raises(DdbValidation):
        dao.get(Other, "x")


@pytest.mark.parametrize("segments", [1, 3])
def test_scan_filters_on_column(dao, segments):
    for i in range(10):
        dao.create(User(user_id=f"u{i}", email=f"u{i}@example.com", role="admin" if i % 3 == 0 else "member"))

    admins = dao.scan(User, segments, "role", "admin")
    assert sorted(u.user_id for u in admins) == ["u0", "u3", "u6", "u9"]
    assert all(isinstance(u, User) for u in admins)


def test_scan_handles_reserved_word_columns(dao):
    # "name" is a DynamoDB reserved word; it must go through ExpressionAttributeNames.
    class Named(DynamoModel):
        ddb_hash_key = "user_id"
        user_id: str
        name: str

    dao.create(Named(user_id="n1", name="alpha"))
    dao.create(Named(user_id="n2", name="beta"))
    out = dao.scan(Named, 2, "name", "beta")
    assert [n.user_id for n in out] == ["n2"]


def test_scan_uses_default_segments_from_settings(dao, monkeypatch):
    from tabledao.db.dynamodb.mapper import DynamoMapper

    seen: dict[str, Any] = {}
    original = DynamoMapper.parallel_scan

    def _spy(self, model_cls, **kwargs):
        seen.update(kwargs)
        return original(self, model_cls, **kwargs)

    monkeypatch.setattr(DynamoMapper, "parallel_scan", _spy)
    dao.scan(User, None, "role", "admin")
    assert seen["total_segments"] == 4
    assert seen["config"].consistent_read is True
    assert seen["config"].table_name_override == "QA_USERS"


def test_scan_rejects_bad_segments_and_columns(dao):
    from tabledao.db.dynamodb.errors import DdbValidation

    with pytest.raises(DdbValidation):
        dao.scan(User, 0, "role", "admin")
    with pytest.raises(DdbValidation):
        dao.scan(User, 2, " ", "admin")


def test_get_is_strongly_consistent(dao, monkeypatch):
    from tabledao.db.dynamodb.client import DynamoConnection

    calls: list[tuple[str, dict[str, Any]]] = []
    original_table = DynamoConnection.table

    class _SpyTable:
        def __init__(self, name, table):
            self._name = name
            self._table = table

        def get_item(self, **kwargs):
            calls.append((self._name, kwargs))
            return self._table.get_item(**kwargs)

    def _table(self, table_name):
        return _SpyTable(table_name, original_table(self, table_name))

    monkeypatch.setattr(DynamoConnection, "table", _table)
    dao.get(User, "u1")
    assert calls == [("QA_USERS", {"Key": {"user_id": "u1"}, "ConsistentRead": True})]


def test_service_errors_are_logged_and_reraised(dao, monkeypatch):
    from tabledao.db.dynamodb.errors import DdbConflict

    def _boom(*args, **kwargs):
        raise ClientError(
            {
                "Error": {"Code": "ConditionalCheckFailedException", "Message": "nope"},
                "ResponseMetadata": {"RequestId": "rid-1", "HTTPStatusCode": 400},
            },
            "PutItem",
        )

    monkeypatch.setattr(dao._mapper, "save", _boom)
    with capture_logs() as logs:
        with pytest.raises(DdbConflict) as ei:
            dao.create(User(user_id="u1", email="a@example.com"))

    assert ei.value.operation == "PutItem"
    assert ei.value.table_name == "QA_USERS"
    assert ei.value.key == {"user_id": "u1"}
    rejected = [e for e in logs if e["event"] == "ddb_request_rejected"]
    assert rejected and rejected[0]["request_id"] == "rid-1"


def test_client_errors_are_logged_and_reraised_on_get(dao, monkeypatch):
    from tabledao.db.dynamodb.errors import DdbClientError

    def _boom(*args, **kwargs):
        raise EndpointConnectionError(endpoint_url="https://dynamodb.us-east-1.amazonaws.com")

    monkeypatch.setattr(dao._mapper, "load", _boom)
    with capture_logs() as logs:
        with pytest.raises(DdbClientError):
            dao.get(User, "u1")
    assert "ddb_client_failure" in [e["event"] for e in logs]


def test_explicit_arguments_work_in_production_without_prefix_setting(aws_setup, monkeypatch):
    from tabledao.settings import load_settings

    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.delenv("DDB_TABLE_PREFIX", raising=False)
    load_settings.cache_clear()

    dao = UsersDao(table_name_prefix="PRODUCTION")
    assert dao.table_name == "PRODUCTION_USERS"
    dao.create(User(user_id="u1", email="a@example.com"))
    assert dao.get(User, "u1").email == "a@example.com"


def test_from_settings_in_production_requires_prefix(aws_setup, monkeypatch):
    from tabledao.settings import load_settings

    monkeypatch.setenv("APP_ENV", "production")
    load_settings.cache_clear()

    with pytest.raises(RuntimeError):
        DynamoDao.from_settings(base_table_name="USERS", primary_id="user_id")


def test_constructor_accepts_positional_arguments(aws_setup):
    dao = DynamoDao("testing", "testing", "us-east-1", "JOESMITH", "USERS", "user_id")
    assert dao.table_name == "JOESMITH_USERS"
    assert dao.base_table_name == "USERS"
    assert dao.primary_id == "user_id"


def test_parallel_scan_without_filter_returns_every_item(dao):
    from tabledao.db.dynamodb.mapper import MapperConfig

    for i in range(5):
        dao.create(User(user_id=f"u{i}", email=f"u{i}@example.com", score=i + 0.5))

    rows = dao._mapper.parallel_scan(
        User,
        total_segments=2,
        config=MapperConfig(table_name_override="QA_USERS"),
    )
    assert sorted(u.user_id for u in rows) == [f"u{i}" for i in range(5)]
    assert {u.user_id: u.score for u in rows}["u3"] == 3.5


def test_scan_single_item_matches(dao):
    dao.create(User(user_id="u1", email="a@example.com", role="admin"))
    assert dao.scan(User, 1, "role", "admin") == [User(user_id="u1", email="a@example.com", role="admin")]


def test_non_string_hash_key_is_rejected(dao):
    from tabledao.db.dynamodb.errors import DdbValidation

    class Counter(DynamoModel):
        ddb_hash_key = "user_id"
        user_id: int

    with pytest.raises(DdbValidation) as ei:
        dao.create(Counter(user_id=1))
    assert "str" in str(ei.value)
    with pytest.raises(DdbValidation):
        dao.get(Counter, 1)


def test_optional_string_hash_key_is_accepted(dao):
    class Loose(DynamoModel):
        ddb_hash_key = "user_id"
        user_id: str | None = None
        email: str = ""

    dao.create(Loose(user_id="l1", email="l@example.com"))
    assert dao.get(Loose, "l1").email == "l@example.com"
