"""Page range resolution for extraction runs."""

from __future__ import annotations

import re

from .exceptions import InvalidRangeError, PageOutOfBoundsError
from .types import PageIndexSet

_RANGE_RE = re.compile(r"^([0-9]+)\s*-\s*([0-9]+)$")
_PAGE_RE = re.compile(r"^[0-9]+$")

ALL_PAGES = "all"


def _check_bounds(page: int, token: str, page_count: int) -> None:
    if page < 1:
        raise PageOutOfBoundsError(
            f"Invalid page '{token}': page numbers must be >= 1."
        )
    if page > page_count:
        raise PageOutOfBoundsError(
            f"Page {page} in '{token}' exceeds document page count ({page_count} pages)."
        )


def resolve_page_range(expression: str | None, page_count: int) -> PageIndexSet:
    """
    Resolve a page selection expression into sorted unique 1-based pages.

    ``expression`` is a comma separated list of page numbers and inclusive
    ``start-end`` ranges, e.g. ``"1,3,5-7"``. An empty expression or ``"all"``
    selects every page. Pages outside ``1..page_count`` are rejected, never
    clamped.

    Raises:
        InvalidRangeError: On malformed tokens or reversed ranges.
        PageOutOfBoundsError: On pages outside the document.
    """
    if expression is None or not expression.strip() or expression.strip().lower() == ALL_PAGES:
        return tuple(range(1, page_count + 1))

    pages: set[int] = set()
    for raw_token in expression.split(","):
        token = raw_token.strip()
        if not token:
            raise InvalidRangeError(
                f"Invalid page specification '{expression}': empty entry."
            )

        match = _RANGE_RE.match(token)
        if match:
            start = int(match.group(1))
            end = int(match.group(2))
            if start > end:
                raise InvalidRangeError(
                    f"Invalid range '{token}': start page ({start}) must be <= end page ({end})."
                )
            _check_bounds(start, token, page_count)
            _check_bounds(end, token, page_count)
            pages.update(range(start, end + 1))
            continue

        if not _PAGE_RE.match(token):
            raise InvalidRangeError(
                f"Invalid page number: '{token}'. Expected a positive integer or 'start-end'."
            )
        page = int(token)
        _check_bounds(page, token, page_count)
        pages.add(page)

    return tuple(sorted(pages))


__all__ = ["ALL_PAGES", "resolve_page_range"]
