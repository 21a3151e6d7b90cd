from __future__ import annotations

from typing import Any, Callable, TypeVar

from botocore.exceptions import BotoCoreError, ClientError, ParamValidationError

from ...observability.logging import get_logger
from .errors import (
    DdbAccessDenied,
    DdbClientError,
    DdbConflict,
    DdbError,
    DdbInternal,
    DdbTableNotFound,
    DdbThrottled,
    DdbUnavailable,
    DdbValidation,
)

T = TypeVar("T")

log = get_logger("dynamodb")

_CONFLICT_CODES = {
    "ConditionalCheckFailedException",
    "TransactionConflictException",
}

_THROTTLED_CODES = {
    "ProvisionedThroughputExceededException",
    "ThrottlingException",
    "RequestLimitExceeded",
}

_UNAVAILABLE_CODES = {
    "InternalServerError",
    "ServiceUnavailable",
}

_ACCESS_CODES = {
    "AccessDeniedException",
    "UnrecognizedClientException",
    "InvalidSignatureException",
    "ExpiredTokenException",
    "MissingAuthenticationTokenException",
}

# AWS rejects signed requests when the host clock drifts too far.
_CLOCK_SKEW_CODES = {
    "InvalidSignatureException",
    "SignatureDoesNotMatch",
    "RequestExpired",
}


def _client_error_details(e: ClientError) -> dict[str, Any]:
    resp = e.response or {}
    err = resp.get("Error") or {}
    meta = resp.get("ResponseMetadata") or {}
    status = meta.get("HTTPStatusCode")
    if isinstance(status, int):
        error_type = "Service" if status >= 500 else "Client"
    else:
        error_type = "Unknown"
    return {
        "error_code": err.get("Code") or None,
        "aws_message": err.get("Message") or str(e),
        "http_status_code": status if isinstance(status, int) else None,
        "aws_request_id": meta.get("RequestId") or None,
        "error_type": error_type,
    }


def map_ddb_error(
    *,
    operation: str,
    table_name: str | None,
    key: dict[str, Any] | None,
    exc: Exception,
) -> DdbError:
    if isinstance(exc, DdbError):
        return exc

    if isinstance(exc, ClientError):
        d = _client_error_details(exc)
        code = d["error_code"] or ""
        common: dict[str, Any] = {
            "operation": operation,
            "table_name": table_name,
            "key": key,
            "aws_request_id": d["aws_request_id"],
            "error_code": d["error_code"],
            "http_status_code": d["http_status_code"],
            "error_type": d["error_type"],
            "cause": exc,
        }
        msg = d["aws_message"]

        if code in _CONFLICT_CODES:
            return DdbConflict(message=f"DynamoDB conditional check failed: {msg}", **common)
        if code == "ValidationException":
            return DdbValidation(message=f"DynamoDB request validation failed: {msg}", **common)
        if code == "ResourceNotFoundException":
            return DdbTableNotFound(message=f"DynamoDB table not found: {msg}", **common)
        if code in _ACCESS_CODES:
            return DdbAccessDenied(message=f"DynamoDB access denied: {msg}", **common)
        if code in _THROTTLED_CODES:
            return DdbThrottled(
                message=f"DynamoDB request throttled: {msg}", retryable=True, **common
            )
        if code in _UNAVAILABLE_CODES:
            return DdbUnavailable(
                message=f"DynamoDB service unavailable: {msg}", retryable=True, **common
            )
        return DdbInternal(
            message=f"DynamoDB request failed ({code or 'ClientError'}): {msg}", **common
        )

    if isinstance(exc, ParamValidationError):
        return DdbValidation(
            message=f"DynamoDB request validation failed: {exc}",
            operation=operation,
            table_name=table_name,
            key=key,
            error_type="Client",
            cause=exc,
        )

    if isinstance(exc, BotoCoreError):
        return DdbClientError(
            message=f"DynamoDB client error: {exc}",
            operation=operation,
            table_name=table_name,
            key=key,
            error_type="Client",
            retryable=True,
            cause=exc,
        )

    return DdbInternal(
        message=f"Unexpected DynamoDB error: {exc}",
        operation=operation,
        table_name=table_name,
        key=key,
        cause=exc,
    )


def log_ddb_error(err: DdbError) -> None:
    if err.reached_service:
        # The request made it to AWS but was rejected with an error response.
        log.error(
            "ddb_request_rejected",
            operation=err.operation,
            table_name=err.table_name,
            error_message=err.message,
            http_status_code=err.http_status_code,
            aws_error_code=err.error_code,
            error_type=err.error_type,
            request_id=err.aws_request_id,
        )
        if err.error_code in _CLOCK_SKEW_CODES:
            log.warning(
                "ddb_clock_skew_suspected",
                operation=err.operation,
                hint="check the host clock (ntp) and DNS",
            )
        return

    # The client failed before AWS answered (network, credentials, bad params).
    log.error(
        "ddb_client_failure",
        operation=err.operation,
        table_name=err.table_name,
        error_message=err.message,
    )


def ddb_call(
    operation: str,
    fn: Callable[[], T],
    *,
    table_name: str | None = None,
    key: dict[str, Any] | None = None,
) -> T:
    try:
        return fn()
    except (ClientError, BotoCoreError) as e:
        mapped = map_ddb_error(operation=operation, table_name=table_name, key=key, exc=e)
        log_ddb_error(mapped)
        raise mapped from e
