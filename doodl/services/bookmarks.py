from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from doodl.extensions import db
from doodl.jobs.enrichment import schedule_enrichment
from doodl.models import (
    METADATA_PENDING,
    METADATA_PROVIDED,
    Bookmark,
)
from doodl.services.common import coerce_tags, normalize_notes, normalize_tag
from doodl.services.errors import ConflictError, ValidationError
from doodl.services.search import rank_bookmarks
from doodl.services.security import RequestContext, get_owned


DUPLICATE_URL_MESSAGE = "This URL has already been bookmarked"


def _owner_query(ctx: RequestContext):
    return Bookmark.query.filter_by(user_id=ctx.user_id)


def list_bookmarks(ctx: RequestContext) -> list[Bookmark]:
    if not ctx.is_authenticated:
        return []
    return (
        _owner_query(ctx)
        .order_by(Bookmark.created_at.desc(), Bookmark.id.desc())
        .all()
    )


def search_bookmarks(ctx: RequestContext, query: str, limit: int = 50) -> list[Bookmark]:
    if not ctx.is_authenticated or not (query or "").strip():
        return []
    ranked = rank_bookmarks(list_bookmarks(ctx), query, limit=limit)
    return [row["bookmark"] for row in ranked]


def list_tags(ctx: RequestContext) -> list[str]:
    names: set[str] = set()
    for bookmark in list_bookmarks(ctx):
        names.update(bookmark.tags or [])
    return sorted(names)


def list_urls(ctx: RequestContext) -> list[str]:
    if not ctx.is_authenticated:
        return []
    rows = (
        db.session.query(Bookmark.url)
        .filter(Bookmark.user_id == ctx.user_id)
        .order_by(Bookmark.created_at.desc(), Bookmark.id.desc())
        .all()
    )
    return [row.url for row in rows]


def find_by_url(ctx: RequestContext, url: str) -> Bookmark | None:
    return _owner_query(ctx).filter_by(url=url).first()


def add_bookmark(
    ctx: RequestContext,
    url: str,
    title: str | None = None,
    description: str | None = None,
    favicon: str | None = None,
    notes: str | None = None,
    tags=None,
) -> Bookmark:
    """Insert a bookmark for the caller.

    Without a title the row starts as a stub (title is the URL) and metadata
    enrichment is scheduled once the insert is committed. Explicit metadata
    is stored as given and never enriched.
    """
    user_id = ctx.require_user_id()
    url = (url or "").strip()
    if not url:
        raise ValidationError("url is required")
    if find_by_url(ctx, url):
        raise ConflictError(DUPLICATE_URL_MESSAGE)

    title = (title or "").strip()
    if not title:
        description, favicon = "", None
    bookmark = Bookmark(
        user_id=user_id,
        url=url,
        title=title or url,
        description=(description or "").strip(),
        favicon=(favicon or "").strip() or None,
        notes=normalize_notes(notes),
        tags=coerce_tags(tags),
        read_count=0,
        metadata_status=METADATA_PROVIDED if title else METADATA_PENDING,
        metadata_version=0,
    )
    bookmark.refresh_search_text()
    db.session.add(bookmark)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(DUPLICATE_URL_MESSAGE)

    if bookmark.metadata_status == METADATA_PENDING:
        schedule_enrichment(
            current_app._get_current_object(),
            bookmark_id=bookmark.id,
            user_id=user_id,
            version=bookmark.metadata_version,
        )
        # Inline enrichment commits through its own session.
        db.session.refresh(bookmark)
    return bookmark


def update_bookmark(
    ctx: RequestContext,
    bookmark_id: int,
    title: str | None = None,
    description: str | None = None,
    favicon: str | None = None,
) -> Bookmark | None:
    ctx.require_user_id()
    bookmark = get_owned(Bookmark, bookmark_id, ctx)
    if not bookmark:
        return None
    if title is not None:
        bookmark.title = title.strip() or bookmark.url
    if description is not None:
        bookmark.description = description.strip()
    if favicon is not None:
        bookmark.favicon = favicon.strip() or None
    # A pending enrichment must not overwrite what the user typed.
    bookmark.metadata_version = (bookmark.metadata_version or 0) + 1
    bookmark.refresh_search_text()
    db.session.commit()
    return bookmark


def add_tag(ctx: RequestContext, bookmark_id: int, tag: str) -> Bookmark | None:
    ctx.require_user_id()
    bookmark = get_owned(Bookmark, bookmark_id, ctx)
    name = normalize_tag(tag)
    if not bookmark or not name:
        return bookmark
    tags = list(bookmark.tags or [])
    if name in tags:
        return bookmark
    bookmark.tags = [*tags, name]
    bookmark.refresh_search_text()
    db.session.commit()
    return bookmark


def remove_tag(ctx: RequestContext, bookmark_id: int, tag: str) -> Bookmark | None:
    ctx.require_user_id()
    bookmark = get_owned(Bookmark, bookmark_id, ctx)
    if not bookmark:
        return None
    name = normalize_tag(tag)
    bookmark.tags = [existing for existing in (bookmark.tags or []) if existing != name]
    bookmark.refresh_search_text()
    db.session.commit()
    return bookmark


def update_notes(ctx: RequestContext, bookmark_id: int, notes: str | None) -> Bookmark | None:
    ctx.require_user_id()
    bookmark = get_owned(Bookmark, bookmark_id, ctx)
    if not bookmark:
        return None
    bookmark.notes = normalize_notes(notes)
    bookmark.refresh_search_text()
    db.session.commit()
    return bookmark


def track_read(ctx: RequestContext, bookmark_id: int) -> bool:
    ctx.require_user_id()
    try:
        bookmark_id = int(bookmark_id)
    except (TypeError, ValueError):
        return False
    updated = (
        _owner_query(ctx)
        .filter_by(id=bookmark_id)
        .update(
            {Bookmark.read_count: Bookmark.read_count + 1},
            synchronize_session=False,
        )
    )
    db.session.commit()
    return updated > 0


def remove_bookmark(ctx: RequestContext, bookmark_id: int) -> bool:
    ctx.require_user_id()
    bookmark = get_owned(Bookmark, bookmark_id, ctx)
    if not bookmark:
        return False
    db.session.delete(bookmark)
    db.session.commit()
    return True


def _apply_each(ctx: RequestContext, bookmark_ids, action) -> int:
    applied = 0
    for bookmark_id in dict.fromkeys(bookmark_ids or []):
        try:
            bookmark = get_owned(Bookmark, bookmark_id, ctx)
            if not bookmark:
                continue
            if action(bookmark):
                db.session.commit()
                applied += 1
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.warning(
                "Bulk bookmark update failed for %s (user %s): %s",
                bookmark_id,
                ctx.user_id,
                exc,
            )
    return applied


def bulk_add_tag(ctx: RequestContext, bookmark_ids, tag: str) -> int:
    ctx.require_user_id()
    name = normalize_tag(tag)
    if not name:
        return 0

    def _tag(bookmark: Bookmark) -> bool:
        tags = list(bookmark.tags or [])
        if name in tags:
            return False
        bookmark.tags = [*tags, name]
        bookmark.refresh_search_text()
        return True

    return _apply_each(ctx, bookmark_ids, _tag)


def bulk_remove(ctx: RequestContext, bookmark_ids) -> int:
    ctx.require_user_id()

    def _delete(bookmark: Bookmark) -> bool:
        db.session.delete(bookmark)
        return True

    return _apply_each(ctx, bookmark_ids, _delete)


def filter_by_tags(bookmarks: list[Bookmark], tags: list[str]) -> list[Bookmark]:
    if not tags:
        return bookmarks
    required = set(tags)
    return [item for item in bookmarks if required.issubset(item.tags or [])]
