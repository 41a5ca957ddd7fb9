from __future__ import annotations

from flask import current_app, jsonify, request

from doodl.services import api_keys as key_store
from doodl.services import bookmarks as bookmark_store
from doodl.services import memos as memo_store
from doodl.services import navigations as navigation_store
from doodl.services.common import ensure_scheme
from doodl.services.errors import ValidationError
from doodl.services.metadata import extract_metadata, options_from_config
from doodl.services.security import session_context
from doodl.services.stats import get_stats
from doodl.services.timeframes import resolve_timezone
from doodl.web import web_bp


def _payload() -> dict:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def _ids_from_payload(field_name: str) -> list[int]:
    values = _payload().get(field_name) or []
    if not isinstance(values, list):
        raise ValidationError(f"{field_name} must be a list")
    parsed: list[int] = []
    seen: set[int] = set()
    for value in values:
        try:
            parsed_id = int(value)
        except (TypeError, ValueError):
            continue
        if parsed_id > 0 and parsed_id not in seen:
            seen.add(parsed_id)
            parsed.append(parsed_id)
    return parsed


def _optional_text(payload: dict, field_name: str) -> str | None:
    value = payload.get(field_name)
    if value is not None and not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string")
    return value


def _item_or_ok(item):
    if item is None:
        return jsonify({"status": "ok"})
    return jsonify(item.as_dict())


@web_bp.route("/preview", methods=["POST"])
def preview_url():
    session_context().require_user_id()
    url = ensure_scheme(_optional_text(_payload(), "url") or "")
    if not url:
        raise ValidationError("url is required")
    metadata = extract_metadata(url, **options_from_config(current_app.config))
    return jsonify({"url": url, **metadata.as_dict()})


# Bookmarks


@web_bp.route("/bookmarks", methods=["GET"])
def bookmarks_list():
    ctx = session_context()
    query = (request.args.get("q") or "").strip()
    if query:
        items = bookmark_store.search_bookmarks(ctx, query)
    else:
        items = bookmark_store.list_bookmarks(ctx)
    return jsonify({"items": [item.as_dict() for item in items]})


@web_bp.route("/bookmarks/tags", methods=["GET"])
def bookmarks_tags():
    return jsonify({"items": bookmark_store.list_tags(session_context())})


@web_bp.route("/bookmarks", methods=["POST"])
def bookmarks_create():
    payload = _payload()
    bookmark = bookmark_store.add_bookmark(
        session_context(),
        ensure_scheme(_optional_text(payload, "url") or ""),
        title=_optional_text(payload, "title"),
        description=_optional_text(payload, "description"),
        favicon=_optional_text(payload, "favicon"),
        notes=_optional_text(payload, "notes"),
        tags=payload.get("tags"),
    )
    return jsonify(bookmark.as_dict()), 201


@web_bp.route("/bookmarks/<int:bookmark_id>", methods=["PATCH"])
def bookmarks_update(bookmark_id: int):
    payload = _payload()
    bookmark = bookmark_store.update_bookmark(
        session_context(),
        bookmark_id,
        title=_optional_text(payload, "title"),
        description=_optional_text(payload, "description"),
        favicon=_optional_text(payload, "favicon"),
    )
    return _item_or_ok(bookmark)


@web_bp.route("/bookmarks/<int:bookmark_id>/tags", methods=["POST"])
def bookmarks_add_tag(bookmark_id: int):
    tag = _optional_text(_payload(), "tag") or ""
    return _item_or_ok(bookmark_store.add_tag(session_context(), bookmark_id, tag))


@web_bp.route("/bookmarks/<int:bookmark_id>/tags/<tag>", methods=["DELETE"])
def bookmarks_remove_tag(bookmark_id: int, tag: str):
    return _item_or_ok(bookmark_store.remove_tag(session_context(), bookmark_id, tag))


@web_bp.route("/bookmarks/<int:bookmark_id>/notes", methods=["PUT"])
def bookmarks_update_notes(bookmark_id: int):
    notes = _optional_text(_payload(), "notes")
    return _item_or_ok(
        bookmark_store.update_notes(session_context(), bookmark_id, notes)
    )


@web_bp.route("/bookmarks/<int:bookmark_id>/read", methods=["POST"])
def bookmarks_track_read(bookmark_id: int):
    bookmark_store.track_read(session_context(), bookmark_id)
    return jsonify({"status": "ok"})


@web_bp.route("/bookmarks/<int:bookmark_id>", methods=["DELETE"])
def bookmarks_delete(bookmark_id: int):
    bookmark_store.remove_bookmark(session_context(), bookmark_id)
    return jsonify({"status": "ok"})


@web_bp.route("/bookmarks/bulk/tags", methods=["POST"])
def bookmarks_bulk_add_tag():
    ctx = session_context()
    ctx.require_user_id()
    tag = _optional_text(_payload(), "tag") or ""
    updated = bookmark_store.bulk_add_tag(ctx, _ids_from_payload("bookmark_ids"), tag)
    return jsonify({"status": "ok", "updated": updated})


@web_bp.route("/bookmarks/bulk/delete", methods=["POST"])
def bookmarks_bulk_delete():
    ctx = session_context()
    ctx.require_user_id()
    deleted = bookmark_store.bulk_remove(ctx, _ids_from_payload("bookmark_ids"))
    return jsonify({"status": "ok", "deleted": deleted})


# Memos


@web_bp.route("/memos", methods=["GET"])
def memos_list():
    ctx = session_context()
    query = (request.args.get("q") or "").strip()
    if query:
        items = memo_store.search_memos(ctx, query)
    else:
        items = memo_store.list_memos(ctx, tag=request.args.get("tag"))
    return jsonify({"items": [item.as_dict() for item in items]})


@web_bp.route("/memos/tags", methods=["GET"])
def memos_tags():
    return jsonify({"items": memo_store.list_memo_tags(session_context())})


@web_bp.route("/memos", methods=["POST"])
def memos_create():
    content = _optional_text(_payload(), "content")
    memo = memo_store.add_memo(session_context(), content)
    return jsonify(memo.as_dict()), 201


@web_bp.route("/memos/<int:memo_id>", methods=["PATCH"])
def memos_update(memo_id: int):
    content = _optional_text(_payload(), "content")
    return _item_or_ok(memo_store.update_memo(session_context(), memo_id, content))


@web_bp.route("/memos/<int:memo_id>/pin", methods=["POST"])
def memos_toggle_pin(memo_id: int):
    return _item_or_ok(memo_store.toggle_pin(session_context(), memo_id))


@web_bp.route("/memos/<int:memo_id>", methods=["DELETE"])
def memos_delete(memo_id: int):
    memo_store.remove_memo(session_context(), memo_id)
    return jsonify({"status": "ok"})


@web_bp.route("/memos/bulk/delete", methods=["POST"])
def memos_bulk_delete():
    ctx = session_context()
    ctx.require_user_id()
    deleted = memo_store.bulk_remove_memos(ctx, _ids_from_payload("memo_ids"))
    return jsonify({"status": "ok", "deleted": deleted})


# Navigation tiles


@web_bp.route("/navigations", methods=["GET"])
def navigations_list():
    items = navigation_store.list_navigations(session_context())
    return jsonify({"items": [item.as_dict() for item in items]})


@web_bp.route("/navigations", methods=["POST"])
def navigations_create():
    payload = _payload()
    navigation = navigation_store.add_navigation(
        session_context(),
        ensure_scheme(_optional_text(payload, "url") or ""),
        title=_optional_text(payload, "title"),
        description=_optional_text(payload, "description"),
        favicon=_optional_text(payload, "favicon"),
    )
    return jsonify(navigation.as_dict()), 201


@web_bp.route("/navigations/<int:navigation_id>", methods=["PATCH"])
def navigations_update(navigation_id: int):
    payload = _payload()
    navigation = navigation_store.update_navigation(
        session_context(),
        navigation_id,
        title=_optional_text(payload, "title"),
        description=_optional_text(payload, "description"),
        favicon=_optional_text(payload, "favicon"),
    )
    return _item_or_ok(navigation)


@web_bp.route("/navigations/<int:navigation_id>", methods=["DELETE"])
def navigations_delete(navigation_id: int):
    navigation_store.remove_navigation(session_context(), navigation_id)
    return jsonify({"status": "ok"})


@web_bp.route("/navigations/reorder", methods=["POST"])
def navigations_reorder():
    ctx = session_context()
    ctx.require_user_id()
    ordered_ids = _payload().get("ordered_ids") or []
    if not isinstance(ordered_ids, list):
        raise ValidationError("ordered_ids must be a list")
    items = navigation_store.reorder_navigations(ctx, ordered_ids)
    return jsonify({"items": [item.as_dict() for item in items]})


# API keys


@web_bp.route("/api-keys", methods=["GET"])
def api_keys_list():
    items = key_store.list_api_keys(session_context())
    return jsonify({"items": [item.as_dict() for item in items]})


@web_bp.route("/api-keys", methods=["POST"])
def api_keys_create():
    name = _optional_text(_payload(), "name") or ""
    row, plaintext = key_store.generate_api_key(session_context(), name)
    return jsonify({**row.as_dict(), "key": plaintext}), 201


@web_bp.route("/api-keys/<int:key_id>", methods=["DELETE"])
def api_keys_revoke(key_id: int):
    key_store.revoke_api_key(session_context(), key_id)
    return jsonify({"status": "ok"})


# Stats


@web_bp.route("/stats", methods=["GET"])
def stats():
    tz = resolve_timezone(
        request.args.get("timezone"),
        current_app.config.get("DEFAULT_TIMEZONE", "UTC"),
    )
    return jsonify(get_stats(session_context(), tz=tz))
