from __future__ import annotations

from rapidfuzz import fuzz


# (field, points) for plain substring hits outside the title.
CONTAINS_WEIGHTS = (("description", 45), ("notes", 35), ("url", 30))

# (field, reason, minimum partial_ratio, multiplier, minimum query length)
FUZZY_WEIGHTS = (
    ("title", "title_fuzzy", 72, 0.30, 1),
    ("tags", "tag_fuzzy", 80, 0.20, 1),
    ("description", "description_fuzzy", 88, 0.16, 4),
)

FUZZY_TEXT_LIMIT = 6000
ALL_TERMS_POINTS = 25


def _field(bookmark, name: str) -> str:
    if name == "tags":
        return " ".join(bookmark.tags or []).lower()
    return (getattr(bookmark, name, None) or "").strip().lower()


def _title_points(query: str, title: str) -> tuple[float, str | None]:
    if query == title:
        return 150, "exact_title"
    if title.startswith(query):
        return 120, "title_prefix"
    if query in title:
        return 100, "title_contains"
    return 0, None


def score_bookmark(bookmark, query: str) -> tuple[float, list[str]]:
    """Score one bookmark against a query.

    Direct hits on individual fields come first. Only when none of them
    match does the query fall back to term coverage of ``search_text``, the
    same text the bookmark is stored with. Fuzzy title/tag/description
    similarity is added on top either way.
    """
    q = query.strip().lower()
    score = 0.0
    reasons: list[str] = []

    points, reason = _title_points(q, _field(bookmark, "title"))
    if reason:
        score += points
        reasons.append(reason)

    if q in (bookmark.tags or []):
        score += 90
        reasons.append("tag_match")

    for name, weight in CONTAINS_WEIGHTS:
        text = _field(bookmark, name)
        if text and q in text:
            score += weight
            reasons.append(f"{name}_contains")

    if not reasons:
        search_text = _field(bookmark, "search_text")
        terms = q.split()
        if terms and all(term in search_text for term in terms):
            score += ALL_TERMS_POINTS
            reasons.append("all_terms")

    for name, reason, threshold, multiplier, min_length in FUZZY_WEIGHTS:
        text = _field(bookmark, name)
        if not text or len(q) < min_length:
            continue
        ratio = fuzz.partial_ratio(q, text[:FUZZY_TEXT_LIMIT])
        if ratio >= threshold:
            score += ratio * multiplier
            reasons.append(reason)

    return score, reasons


def rank_bookmarks(bookmarks, query: str, limit: int = 50):
    if not query or not query.strip():
        return []

    ranked = []
    for bookmark in bookmarks:
        score, reasons = score_bookmark(bookmark, query)
        if reasons and score > 0:
            ranked.append(
                {"bookmark": bookmark, "score": round(score, 2), "reasons": reasons}
            )

    ranked.sort(key=lambda item: item["score"], reverse=True)
    return ranked[:limit]
