from __future__ import annotations

from flask import current_app

from doodl.extensions import db
from doodl.models import ApiKey, utcnow
from doodl.services.errors import ConflictError, ValidationError
from doodl.services.security import RequestContext, get_owned


def list_api_keys(ctx: RequestContext) -> list[ApiKey]:
    if not ctx.is_authenticated:
        return []
    return (
        ApiKey.query.filter_by(user_id=ctx.user_id)
        .order_by(ApiKey.created_at.desc(), ApiKey.id.desc())
        .all()
    )


def generate_api_key(ctx: RequestContext, name: str) -> tuple[ApiKey, str]:
    """Create a key and return it with its plaintext, which is never stored."""
    user_id = ctx.require_user_id()
    name = (name or "").strip()
    if not name:
        raise ValidationError("Name is required")

    limit = int(current_app.config.get("MAX_API_KEYS_PER_USER", 3))
    if ApiKey.query.filter_by(user_id=user_id).count() >= limit:
        raise ConflictError(f"Maximum of {limit} API keys allowed")

    plaintext, key_hash, prefix = ApiKey.issue_key(
        current_app.config.get("API_KEY_PREFIX", "doodl_")
    )
    row = ApiKey(user_id=user_id, name=name, key_hash=key_hash, prefix=prefix)
    db.session.add(row)
    db.session.commit()
    return row, plaintext


def revoke_api_key(ctx: RequestContext, key_id: int) -> bool:
    ctx.require_user_id()
    row = get_owned(ApiKey, key_id, ctx)
    if not row:
        return False
    db.session.delete(row)
    db.session.commit()
    return True


def record_usage(key_id: int) -> None:
    row = db.session.get(ApiKey, key_id)
    if row is None:
        return
    row.last_used_at = utcnow()
    db.session.commit()
