from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(slots=True)
class DdbError(Exception):
    """Base error for DynamoDB operations.

    When ``http_status_code`` is set the request made it to AWS and was
    rejected; otherwise the client failed before getting a response.
    """

    message: str
    operation: str | None = None
    table_name: str | None = None
    key: dict[str, Any] | None = None
    aws_request_id: str | None = None
    error_code: str | None = None
    http_status_code: int | None = None
    error_type: str | None = None
    retryable: bool = False
    cause: Exception | None = None

    def __str__(self) -> str:
        return self.message

    @property
    def reached_service(self) -> bool:
        return self.http_status_code is not None


@dataclass(slots=True)
class DdbNotFound(DdbError):
    pass


@dataclass(slots=True)
class DdbConflict(DdbError):
    pass


@dataclass(slots=True)
class DdbValidation(DdbError):
    pass


@dataclass(slots=True)
class DdbThrottled(DdbError):
    pass


@dataclass(slots=True)
class DdbUnavailable(DdbError):
    pass


@dataclass(slots=True)
class DdbAccessDenied(DdbError):
    pass


@dataclass(slots=True)
class DdbTableNotFound(DdbError):
    pass


@dataclass(slots=True)
class DdbClientError(DdbError):
    pass


@dataclass(slots=True)
class DdbConfigError(DdbError):
    pass


@dataclass(slots=True)
class DdbInternal(DdbError):
    pass
