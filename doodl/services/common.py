import re


_SCHEME_PATTERN = re.compile(r"^https?://", re.IGNORECASE)


def ensure_scheme(url: str) -> str:
    value = (url or "").strip()
    if not value:
        return ""
    if _SCHEME_PATTERN.match(value):
        return value
    return f"https://{value}"


def normalize_tag(raw: str | None) -> str:
    return (raw or "").strip().lower()


def parse_tags(raw) -> list[str]:
    """Split comma/semicolon separated input (or a list of such strings)."""
    if not raw:
        return []
    if isinstance(raw, str):
        raw = [raw]
    tokens = []
    for item in raw:
        if item is None:
            continue
        tokens.extend(str(item).replace(";", ",").split(","))
    names = []
    for token in tokens:
        name = normalize_tag(token)
        if name and name not in names:
            names.append(name)
    return names


def normalize_tag_list(items) -> list[str]:
    """Normalize each entry on its own; entries are never split."""
    names = []
    for item in items or []:
        if not isinstance(item, str):
            continue
        name = normalize_tag(item)
        if name and name not in names:
            names.append(name)
    return names


def coerce_tags(raw) -> list[str]:
    if isinstance(raw, (list, tuple)):
        return normalize_tag_list(raw)
    return parse_tags(raw)


def normalize_notes(value: str | None) -> str | None:
    text = (value or "").strip()
    return text or None
