"""Pagination engine — pure slicing over an ordered collection."""
import math
from typing import Sequence, TypeVar

from station_ops.schemas.pagination import PaginatedResult

T = TypeVar("T")

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10


def paginate(collection: Sequence[T], page: int = DEFAULT_PAGE, limit: int = DEFAULT_LIMIT) -> PaginatedResult:
    """Return one page of ``collection`` plus totals.

    ``page`` is 1-indexed. Values below 1 are clamped to 1 for both ``page``
    and ``limit``. A page past the end yields empty ``data``.
    """
    page = max(1, DEFAULT_PAGE if page is None else int(page))
    limit = max(1, DEFAULT_LIMIT if limit is None else int(limit))

    total = len(collection)
    start = (page - 1) * limit
    end = start + limit

    return PaginatedResult(
        data=list(collection[start:end]),
        total=total,
        page=page,
        limit=limit,
        total_pages=math.ceil(total / limit),
    )
