from __future__ import annotations

import re

from .errors import DdbConfigError

# DynamoDB table names: 3-255 chars of letters, digits, underscore, dash and dot.
_TABLE_NAME_RE = re.compile(r"^[A-Za-z0-9_.\-]{3,255}$")


def prefixed_table_name(prefix: str | None, base_table_name: str | None) -> str:
    """
    Build the physical table name for an environment or developer.

    Tables follow ``{PREFIX}_{BASE}``:

    - QA_USERS (QA table)
    - PRODUCTION_USERS (production table)
    - JOESMITH_USERS (developer "Joe Smith" tables)
    """
    p = str(prefix or "").strip()
    if not p:
        raise DdbConfigError(
            message=(
                "DynamoDB tables require a unique table name prefix. "
                "Set DDB_TABLE_PREFIX or pass table_name_prefix."
            ),
            operation="Config",
        )

    base = str(base_table_name or "").strip()
    if not base:
        raise DdbConfigError(message="base_table_name is required", operation="Config")

    name = f"{p}_{base}"
    if not _TABLE_NAME_RE.match(name):
        raise DdbConfigError(
            message=f"Invalid DynamoDB table name: {name!r}",
            operation="Config",
            table_name=name,
        )
    return name
