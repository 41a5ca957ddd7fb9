from __future__ import annotations

from collections import Counter
from datetime import datetime, timedelta, timezone, tzinfo
from urllib.parse import urlsplit

from doodl.models import Bookmark, Memo, ensure_utc, utcnow
from doodl.services.security import RequestContext


WEEKS = 12
TOP_DOMAINS = 5
TOP_TAGS = 8
MOST_READ = 5


def empty_stats() -> dict:
    return {
        "total_bookmarks": 0,
        "total_reads": 0,
        "unread_count": 0,
        "with_notes_count": 0,
        "unique_tags_count": 0,
        "unique_domains_count": 0,
        "top_domains": [],
        "top_tags": [],
        "most_read": [],
        "weekly_activity": [],
        "total_memos": 0,
        "pinned_memos_count": 0,
        "nsfw_memos_count": 0,
        "memo_created_today_count": 0,
        "memo_unique_tags_count": 0,
        "top_memo_tags": [],
        "memo_weekly_activity": [],
    }


def domain_of(url: str) -> str | None:
    try:
        hostname = urlsplit((url or "").strip()).hostname
    except ValueError:
        return None
    if not hostname:
        return None
    return hostname.removeprefix("www.")


def top_counts(counter: Counter, limit: int, label: str) -> list[dict]:
    # Counter keeps first-seen order, and sorted() is stable, so ties keep it.
    ranked = sorted(counter.items(), key=lambda item: item[1], reverse=True)
    return [{label: key, "count": count} for key, count in ranked[:limit]]


def weekly_activity(created: list[datetime], now: datetime, tz: tzinfo) -> list[dict]:
    week = timedelta(days=7)
    buckets = []
    for index in range(WEEKS - 1, -1, -1):
        start = now - (index + 1) * week
        end = now - index * week
        count = sum(1 for value in created if start <= value < end)
        buckets.append({"week_label": start.astimezone(tz).strftime("%m/%d"), "count": count})
    return buckets


def compute_stats(bookmarks, memos, now: datetime | None = None, tz: tzinfo = timezone.utc) -> dict:
    now = ensure_utc(now) if now else utcnow()
    stats = empty_stats()
    # Histograms stay empty only while there is nothing at all to chart.
    has_activity = bool(bookmarks) or bool(memos)

    domain_counts: Counter = Counter()
    tag_counts: Counter = Counter()
    for bookmark in bookmarks:
        reads = bookmark.read_count or 0
        stats["total_reads"] += reads
        if reads == 0:
            stats["unread_count"] += 1
        if bookmark.notes:
            stats["with_notes_count"] += 1
        domain = domain_of(bookmark.url)
        if domain:
            domain_counts[domain] += 1
        for tag in bookmark.tags or []:
            tag_counts[tag] += 1

    read = [item for item in bookmarks if (item.read_count or 0) > 0]
    read.sort(key=lambda item: item.read_count, reverse=True)

    stats.update(
        {
            "total_bookmarks": len(bookmarks),
            "unique_tags_count": len(tag_counts),
            "unique_domains_count": len(domain_counts),
            "top_domains": top_counts(domain_counts, TOP_DOMAINS, "domain"),
            "top_tags": top_counts(tag_counts, TOP_TAGS, "tag"),
            "most_read": [
                {
                    "title": item.title,
                    "url": item.url,
                    "favicon": item.favicon,
                    "read_count": item.read_count,
                }
                for item in read[:MOST_READ]
            ],
            "weekly_activity": weekly_activity(
                [ensure_utc(item.created_at) for item in bookmarks], now, tz
            )
            if has_activity
            else [],
        }
    )

    local_now = now.astimezone(tz)
    start_of_today = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
    memo_tag_counts: Counter = Counter()
    for memo in memos:
        if memo.is_pinned:
            stats["pinned_memos_count"] += 1
        if memo.has_nsfw:
            stats["nsfw_memos_count"] += 1
        if ensure_utc(memo.created_at) >= start_of_today:
            stats["memo_created_today_count"] += 1
        for tag in memo.tags or []:
            memo_tag_counts[tag] += 1

    stats.update(
        {
            "total_memos": len(memos),
            "memo_unique_tags_count": len(memo_tag_counts),
            "top_memo_tags": top_counts(memo_tag_counts, TOP_TAGS, "tag"),
            "memo_weekly_activity": weekly_activity(
                [ensure_utc(memo.created_at) for memo in memos], now, tz
            )
            if has_activity
            else [],
        }
    )
    return stats


def get_stats(ctx: RequestContext, tz: tzinfo = timezone.utc, now: datetime | None = None) -> dict:
    if not ctx.is_authenticated:
        return empty_stats()
    bookmarks = Bookmark.query.filter_by(user_id=ctx.user_id).order_by(Bookmark.id.asc()).all()
    memos = Memo.query.filter_by(user_id=ctx.user_id).order_by(Memo.id.asc()).all()
    return compute_stats(bookmarks, memos, now=now, tz=tz)
