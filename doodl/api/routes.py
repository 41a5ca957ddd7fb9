from __future__ import annotations

from flask import current_app, g, jsonify, request

from doodl.api import api_bp
from doodl.models import ensure_utc
from doodl.services import bookmarks as bookmark_store
from doodl.services.api_keys import record_usage
from doodl.services.common import ensure_scheme, normalize_tag_list, parse_tags
from doodl.services.security import api_key_required
from doodl.services.timeframes import (
    from_epoch_ms,
    resolve_day_range,
    resolve_timezone,
)


CORS_ALLOW_METHODS = "GET, POST, OPTIONS"
CORS_ALLOW_HEADERS = "Content-Type, Authorization"


@api_bp.before_request
def cors_preflight():
    if request.method == "OPTIONS":
        return "", 204
    return None


@api_bp.after_request
def finish_api_response(response):
    response.headers["Access-Control-Allow-Origin"] = current_app.config.get(
        "CORS_ALLOW_ORIGIN", "*"
    )
    response.headers["Access-Control-Allow-Methods"] = CORS_ALLOW_METHODS
    response.headers["Access-Control-Allow-Headers"] = CORS_ALLOW_HEADERS

    key_id = g.pop("api_key_id", None)
    if key_id is not None and response.status_code < 400:
        record_usage(key_id)
    return response


def _error(message: str, status: int):
    return jsonify({"error": message}), status


def _requested_tags() -> list[str]:
    raw = request.args.getlist("tag") + request.args.getlist("tags")
    return parse_tags(raw)


@api_bp.route("/bookmark", methods=["POST"])
@api_key_required
def create_bookmark():
    content_type = request.headers.get("Content-Type", "")
    if "application/json" not in content_type:
        return _error("Content-Type must be application/json", 400)

    payload = request.get_json(silent=True)
    if payload is None:
        return _error("Invalid JSON body", 400)
    if not isinstance(payload, dict):
        return _error("Request body must be a JSON object", 400)

    url = payload.get("url")
    tags = payload.get("tags")
    notes = payload.get("notes")
    if not isinstance(url, str) or not url.strip():
        return _error('"url" must be a non-empty string', 400)
    if tags is not None and (
        not isinstance(tags, list) or not all(isinstance(tag, str) for tag in tags)
    ):
        return _error('"tags" must be an array of strings', 400)
    if notes is not None and not isinstance(notes, str):
        return _error('"notes" must be a string', 400)

    bookmark = bookmark_store.add_bookmark(
        g.api_context,
        ensure_scheme(url),
        notes=notes,
        tags=normalize_tag_list(tags),
    )
    return jsonify({"id": bookmark.id, "url": bookmark.url}), 201


@api_bp.route("/bookmarks", methods=["GET"])
@api_key_required
def list_bookmarks():
    default_zone = current_app.config.get("DEFAULT_TIMEZONE", "UTC")
    zone = request.args.get("timezone")
    if zone:
        resolve_timezone(zone, default_zone)

    items = bookmark_store.list_bookmarks(g.api_context)
    day = request.args.get("date")
    if day:
        start_ms, end_ms = resolve_day_range(day, zone, default=default_zone)
        start, end = from_epoch_ms(start_ms), from_epoch_ms(end_ms)
        items = [
            item for item in items if start <= ensure_utc(item.created_at) < end
        ]

    items = bookmark_store.filter_by_tags(items, _requested_tags())
    return jsonify({"items": [item.as_dict() for item in items]})


@api_bp.route("/tags", methods=["GET"])
@api_key_required
def list_tags():
    return jsonify(bookmark_store.list_tags(g.api_context))


@api_bp.route("/urls", methods=["GET"])
@api_key_required
def list_urls():
    return jsonify(bookmark_store.list_urls(g.api_context))
