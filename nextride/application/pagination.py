"""
Keyset pagination over time-ordered record ids.

Callers fetch ``limit + 1`` records ordered by ascending id starting after
the decoded cursor, then hand them to build_page(). Sorting on the id
(insertion order) and never on a mutable field keeps pages stable while
other records are inserted or edited.
"""
import base64
import binascii
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

from nextride.domain.identifiers import is_record_id

DEFAULT_LIMIT = 20
MAX_LIMIT = 100

T = TypeVar("T")

_TO_URLSAFE = str.maketrans("+/", "-_")


@dataclass(frozen=True)
class PageRequest:
    limit: int
    after_id: str | None = None

    @property
    def fetch_size(self) -> int:
        return self.limit + 1

    @classmethod
    def from_query(cls, limit: object = None, cursor: str | None = None) -> "PageRequest":
        return cls(limit=clamp_limit(limit), after_id=decode_cursor(cursor))


@dataclass(frozen=True)
class Page(Generic[T]):
    data: list[T]
    has_next_page: bool
    limit: int
    next_cursor: str | None = None


def clamp_limit(requested: object = None) -> int:
    """Bound a requested page size to [1, MAX_LIMIT]; absent, zero or junk means DEFAULT_LIMIT."""
    if isinstance(requested, bool):
        return DEFAULT_LIMIT
    try:
        value = int(str(requested).strip()) if requested is not None else 0
    except (TypeError, ValueError):
        return DEFAULT_LIMIT
    if value == 0:
        return DEFAULT_LIMIT
    return min(max(value, 1), MAX_LIMIT)


def encode_cursor(record_id: str) -> str:
    return base64.urlsafe_b64encode(record_id.encode("utf-8")).decode("ascii").rstrip("=")


def decode_cursor(
    cursor: str | None, is_valid: Callable[[str], bool] = is_record_id
) -> str | None:
    """Return the id inside a cursor, or None for anything absent or malformed."""
    if not cursor or not isinstance(cursor, str):
        return None
    text = cursor.strip().translate(_TO_URLSAFE)
    text += "=" * (-len(text) % 4)
    try:
        decoded = base64.urlsafe_b64decode(text.encode("ascii")).decode("utf-8")
    except (binascii.Error, UnicodeError, ValueError):
        return None
    return decoded if is_valid(decoded) else None


def build_page(
    records: Sequence[T], limit: int, key: Callable[[T], str] = lambda r: r.id  # type: ignore[attr-defined]
) -> Page[T]:
    has_next_page = len(records) > limit
    data = list(records[:limit]) if has_next_page else list(records)
    next_cursor = encode_cursor(key(data[-1])) if has_next_page and data else None
    return Page(data=data, has_next_page=has_next_page, limit=limit, next_cursor=next_cursor)
