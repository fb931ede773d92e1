# This file handles pagination and sort parsing for list endpoints.
# It exists so every resource router uses the same rules for page, limit, and ordering.
# The helpers validate user input and produce stable skip/limit behavior for MongoDB cursors.
# Centralizing this logic keeps endpoint code small and avoids inconsistent query semantics.

from __future__ import annotations

from dataclasses import dataclass

from pymongo import ASCENDING, DESCENDING


@dataclass(frozen=True)
class SortSpec:
    field: str
    order: str

    @property
    def as_text(self) -> str:
        return f"{self.field}:{self.order}"

    @property
    def direction(self) -> int:
        return DESCENDING if self.order == "desc" else ASCENDING

    def as_mongo(self) -> list[tuple[str, int]]:
        """Sort keys for a cursor, with `_id` as a deterministic tie-breaker."""

        keys = [(self.field, self.direction)]
        if self.field != "_id":
            keys.append(("_id", self.direction))
        return keys


@dataclass(frozen=True)
class PaginationSpec:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def normalize_pagination(
    *,
    page: int,
    limit: int | None,
    default_limit: int,
    max_limit: int,
) -> PaginationSpec:
    """Validate and normalize page/limit values."""

    resolved_limit = default_limit if limit is None else limit
    if page < 1:
        raise ValueError("page must be >= 1")
    if resolved_limit < 1:
        raise ValueError("limit must be >= 1")
    if resolved_limit > max_limit:
        raise ValueError(f"limit must be <= {max_limit}")
    return PaginationSpec(page=page, limit=resolved_limit)


def parse_sort(
    *,
    requested_sort: str | None,
    default_sort: str,
    allowed_fields: set[str] | frozenset[str],
) -> SortSpec:
    """Parse sort input in the form `field:asc|desc`."""

    raw_sort = (requested_sort or default_sort).strip()
    if not raw_sort:
        raise ValueError("sort cannot be empty")

    if ":" in raw_sort:
        field, order = raw_sort.split(":", 1)
    else:
        field, order = raw_sort, "asc"
    order = order.strip().lower()

    if field not in allowed_fields:
        supported = ", ".join(sorted(allowed_fields))
        raise ValueError(f"Unsupported sort field '{field}'. Supported fields: {supported}")
    if order not in {"asc", "desc"}:
        raise ValueError("sort order must be 'asc' or 'desc'")
    return SortSpec(field=field, order=order)


def compute_total_pages(*, total_count: int, limit: int) -> int:
    """Compute ceil(total_count / limit); zero when nothing matched."""

    if total_count <= 0:
        return 0
    return ((total_count - 1) // limit) + 1
