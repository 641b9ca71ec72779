"""
Audit query parameter handling.
"""
from dataclasses import dataclass
from typing import Annotated, Optional
from fastapi import Query

from app.core import config
from app.core.errors import InvalidRequest


@dataclass(frozen=True)
class Pagination:
    limit: int
    offset: int


def parse_pagination(limit: Optional[str], offset: Optional[str]) -> Pagination:
    """
    Validate raw limit/offset query values.

    Raises:
        InvalidRequest: limit not a positive integer, limit above the
            configured maximum, or offset not a non-negative integer
    """
    if limit is None or limit == "":
        parsed_limit = config.AUDIT_LOG_DEFAULT_LIMIT
    else:
        try:
            parsed_limit = int(limit)
        except ValueError:
            raise InvalidRequest("Limit must be a positive number")
        if parsed_limit < 1:
            raise InvalidRequest("Limit must be a positive number")
    if parsed_limit > config.AUDIT_LOG_MAX_LIMIT:
        raise InvalidRequest(f"Limit cannot exceed {config.AUDIT_LOG_MAX_LIMIT}")

    if offset is None or offset == "":
        parsed_offset = 0
    else:
        try:
            parsed_offset = int(offset)
        except ValueError:
            raise InvalidRequest("Offset must be a non-negative number")
        if parsed_offset < 0:
            raise InvalidRequest("Offset must be a non-negative number")

    return Pagination(limit=parsed_limit, offset=parsed_offset)


async def get_pagination(
    limit: Annotated[Optional[str], Query(description="Maximum entries to return (1-100, default 50)")] = None,
    offset: Annotated[Optional[str], Query(description="Entries to skip (default 0)")] = None,
) -> Pagination:
    return parse_pagination(limit, offset)
