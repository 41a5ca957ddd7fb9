from __future__ import annotations

import re

from doodl.services.errors import ValidationError


TAG_PATTERN = re.compile(r"(^|[^A-Za-z0-9_-])#([A-Za-z0-9_-]+)")
NSFW_MARKER = "#nsfw"


def normalize_content(value: str | None) -> str:
    content = (value or "").strip()
    if not content:
        raise ValidationError("Memo content is required")
    return content


def extract_tags(content: str) -> list[str]:
    tags = {match.group(2).lower() for match in TAG_PATTERN.finditer(content or "")}
    return sorted(tags)


def has_nsfw_line(content: str) -> bool:
    return any(
        line.strip().lower() == NSFW_MARKER for line in (content or "").split("\n")
    )


def build_memo_search_text(content: str, tags: list[str]) -> str:
    return " ".join([content, *tags]).lower()
