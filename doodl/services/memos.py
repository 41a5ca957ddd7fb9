from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from doodl.extensions import db
from doodl.models import Memo
from doodl.services.common import normalize_tag
from doodl.services.memo_text import normalize_content
from doodl.services.security import RequestContext, get_owned


def _owner_query(ctx: RequestContext):
    return Memo.query.filter_by(user_id=ctx.user_id)


def list_memos(ctx: RequestContext, tag: str | None = None) -> list[Memo]:
    if not ctx.is_authenticated:
        return []
    memos = _owner_query(ctx).order_by(Memo.created_at.desc(), Memo.id.desc()).all()
    name = normalize_tag(tag)
    if name:
        memos = [memo for memo in memos if name in (memo.tags or [])]
    return memos


def search_memos(ctx: RequestContext, query: str) -> list[Memo]:
    terms = (query or "").lower().split()
    if not ctx.is_authenticated or not terms:
        return []
    q = _owner_query(ctx)
    for term in terms:
        q = q.filter(Memo.search_text.contains(term, autoescape=True))
    return q.order_by(Memo.updated_at.desc(), Memo.id.desc()).all()


def list_memo_tags(ctx: RequestContext) -> list[str]:
    names: set[str] = set()
    for memo in list_memos(ctx):
        names.update(memo.tags or [])
    return sorted(names)


def add_memo(ctx: RequestContext, content: str) -> Memo:
    user_id = ctx.require_user_id()
    memo = Memo(user_id=user_id, is_pinned=False)
    memo.set_content(normalize_content(content))
    db.session.add(memo)
    db.session.commit()
    return memo


def update_memo(ctx: RequestContext, memo_id: int, content: str) -> Memo | None:
    ctx.require_user_id()
    content = normalize_content(content)
    memo = get_owned(Memo, memo_id, ctx)
    if not memo:
        return None
    memo.set_content(content)
    db.session.commit()
    return memo


def toggle_pin(ctx: RequestContext, memo_id: int) -> Memo | None:
    ctx.require_user_id()
    memo = get_owned(Memo, memo_id, ctx)
    if not memo:
        return None
    memo.is_pinned = not memo.is_pinned
    db.session.commit()
    return memo


def remove_memo(ctx: RequestContext, memo_id: int) -> bool:
    ctx.require_user_id()
    memo = get_owned(Memo, memo_id, ctx)
    if not memo:
        return False
    db.session.delete(memo)
    db.session.commit()
    return True


def bulk_remove_memos(ctx: RequestContext, memo_ids) -> int:
    ctx.require_user_id()
    removed = 0
    for memo_id in dict.fromkeys(memo_ids or []):
        try:
            memo = get_owned(Memo, memo_id, ctx)
            if not memo:
                continue
            db.session.delete(memo)
            db.session.commit()
            removed += 1
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.warning(
                "Bulk memo delete failed for %s (user %s): %s",
                memo_id,
                ctx.user_id,
                exc,
            )
    return removed
