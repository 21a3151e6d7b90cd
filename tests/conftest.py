from __future__ import annotations

import sys
from pathlib import Path

import boto3
import pytest
from moto import mock_aws

# Ensure the repo root is on sys.path so `import tabledao.*` works in tests.
ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

from tabledao.db.dynamodb.client import botocore_config  # noqa: E402
from tabledao.settings import load_settings  # noqa: E402


def _clear_caches() -> None:
    load_settings.cache_clear()
    botocore_config.cache_clear()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "APP_ENV",
        "DDB_TABLE_PREFIX",
        "DDB_ENDPOINT_URL",
        "DDB_AUTO_CREATE_TABLES",
        "DDB_READ_CAPACITY_UNITS",
        "DDB_WRITE_CAPACITY_UNITS",
        "DDB_SCAN_TOTAL_SEGMENTS",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_REGION", "us-east-1")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    _clear_caches()
    yield
    _clear_caches()


@pytest.fixture()
def aws_setup():
    with mock_aws():
        yield


@pytest.fixture()
def dynamodb_resource(aws_setup):
    return boto3.resource("dynamodb", region_name="us-east-1")
