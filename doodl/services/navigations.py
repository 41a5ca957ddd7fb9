from __future__ import annotations

import sys

from sqlalchemy.exc import IntegrityError

from doodl.extensions import db
from doodl.models import Navigation, ensure_utc
from doodl.services.errors import ConflictError, ValidationError
from doodl.services.security import RequestContext, get_owned


def sort_navigations(items):
    """Manual order first; unpositioned tiles last, newest first on ties."""
    by_newest = sorted(
        items,
        key=lambda item: (ensure_utc(item.created_at), item.id or 0),
        reverse=True,
    )
    return sorted(
        by_newest,
        key=lambda item: item.position if item.position is not None else sys.maxsize,
    )


def _owned_navigations(ctx: RequestContext) -> list[Navigation]:
    return Navigation.query.filter_by(user_id=ctx.user_id).all()


def list_navigations(ctx: RequestContext) -> list[Navigation]:
    if not ctx.is_authenticated:
        return []
    return sort_navigations(_owned_navigations(ctx))


def add_navigation(
    ctx: RequestContext,
    url: str,
    title: str | None = None,
    description: str | None = None,
    favicon: str | None = None,
) -> Navigation:
    user_id = ctx.require_user_id()
    url = (url or "").strip()
    if not url:
        raise ValidationError("url is required")
    if Navigation.query.filter_by(user_id=user_id, url=url).first():
        raise ConflictError("This URL is already on the navigation page")

    ordered = sort_navigations(_owned_navigations(ctx))
    max_position = -1
    for index, item in enumerate(ordered):
        position = item.position if item.position is not None else index
        max_position = max(max_position, position)

    navigation = Navigation(
        user_id=user_id,
        url=url,
        title=(title or "").strip() or url,
        description=(description or "").strip(),
        favicon=(favicon or "").strip() or None,
        position=max_position + 1,
    )
    db.session.add(navigation)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("This URL is already on the navigation page")
    return navigation


def update_navigation(
    ctx: RequestContext,
    navigation_id: int,
    title: str | None = None,
    description: str | None = None,
    favicon: str | None = None,
) -> Navigation | None:
    ctx.require_user_id()
    navigation = get_owned(Navigation, navigation_id, ctx)
    if not navigation:
        return None
    if title is not None:
        navigation.title = title.strip() or navigation.url
    if description is not None:
        navigation.description = description.strip()
    if favicon is not None:
        navigation.favicon = favicon.strip() or None
    db.session.commit()
    return navigation


def remove_navigation(ctx: RequestContext, navigation_id: int) -> bool:
    ctx.require_user_id()
    navigation = get_owned(Navigation, navigation_id, ctx)
    if not navigation:
        return False
    db.session.delete(navigation)
    db.session.commit()
    return True


def reorder_navigations(ctx: RequestContext, ordered_ids) -> list[Navigation]:
    """Put the listed tiles first, in order, then the rest in their old order.

    Positions end up as ``0..n-1`` with no gaps or duplicates; ids the caller
    does not own are ignored.
    """
    ctx.require_user_id()
    navigations = _owned_navigations(ctx)
    by_id = {navigation.id: navigation for navigation in navigations}
    remaining = sort_navigations(navigations)

    ordered: list[Navigation] = []
    for raw_id in ordered_ids or []:
        try:
            navigation = by_id.pop(int(raw_id), None)
        except (TypeError, ValueError):
            continue
        if navigation is not None:
            ordered.append(navigation)

    seen = {navigation.id for navigation in ordered}
    ordered.extend(item for item in remaining if item.id not in seen)
    for position, navigation in enumerate(ordered):
        navigation.position = position
    db.session.commit()
    return ordered
