from __future__ import annotations

from collections.abc import Iterable


def derive_search_text(
    url: str | None,
    title: str | None,
    description: str | None,
    notes: str | None,
    tags: Iterable[str] | None,
) -> str:
    """Build the denormalized text a bookmark is searched by.

    Fields are joined in a fixed order (url, title, description, notes, then
    each tag) and empty values are dropped, so the result only depends on
    the field values.
    """
    parts = [url, title, description, notes, *(tags or [])]
    return " ".join(part for part in parts if part)
