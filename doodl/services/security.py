from __future__ import annotations

from dataclasses import dataclass
from functools import wraps

from flask import g, jsonify, request
from flask_login import current_user

from doodl.extensions import db
from doodl.models import ApiKey
from doodl.services.errors import AuthError


@dataclass(frozen=True)
class RequestContext:
    """Identity of the caller, passed explicitly into every store operation."""

    user_id: int | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    def require_user_id(self) -> int:
        if self.user_id is None:
            raise AuthError("authentication required")
        return self.user_id


ANONYMOUS = RequestContext()


def get_owned(model, entity_id, ctx: RequestContext):
    """Load ``entity_id`` only if it belongs to the caller.

    Missing and foreign rows look the same to the caller: both return None.
    """
    if not ctx.is_authenticated or entity_id is None:
        return None
    try:
        entity = db.session.get(model, int(entity_id))
    except (TypeError, ValueError):
        return None
    if entity is None or entity.user_id != ctx.user_id:
        return None
    return entity


def session_context() -> RequestContext:
    if current_user.is_authenticated:
        return RequestContext(user_id=current_user.id)
    return ANONYMOUS


def _api_key_from_bearer_token() -> ApiKey | None:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    token = auth_header.removeprefix("Bearer ").strip()
    if not token:
        return None
    return ApiKey.query.filter_by(key_hash=ApiKey.hash_key(token)).first()


def api_key_required(func):
    @wraps(func)
    def wrapped(*args, **kwargs):
        api_key = _api_key_from_bearer_token()
        if not api_key:
            return jsonify({"error": "Unauthorized"}), 401
        g.api_key_id = api_key.id
        g.api_context = RequestContext(user_id=api_key.user_id)
        return func(*args, **kwargs)

    return wrapped
