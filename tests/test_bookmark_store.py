import pytest

from doodl.extensions import db
from doodl.jobs.enrichment import apply_metadata
from doodl.models import (
    METADATA_ENRICHED,
    METADATA_PENDING,
    METADATA_PROVIDED,
    Bookmark,
)
from doodl.services import bookmarks as store
from doodl.services.errors import AuthError, ConflictError, ValidationError
from doodl.services.identity import AuthProfile, ensure_user
from doodl.services.metadata import PageMetadata
from doodl.services.search_text import derive_search_text
from doodl.services.security import ANONYMOUS, RequestContext


def _ctx(subject: str) -> RequestContext:
    user = ensure_user(AuthProfile(subject=subject, email=f"{subject}@example.com"))
    return RequestContext(user_id=user.id)


def _assert_search_text(bookmark: Bookmark):
    db.session.refresh(bookmark)
    assert bookmark.search_text == derive_search_text(
        bookmark.url,
        bookmark.title,
        bookmark.description,
        bookmark.notes,
        bookmark.tags,
    )


def test_stub_bookmark_is_enriched_after_insert(app):
    with app.app_context():
        ctx = _ctx("alice")
        bookmark = store.add_bookmark(ctx, "https://example.com/a", tags=["Read"])

        assert bookmark.title == "Fetched https://example.com/a"
        assert bookmark.description == "fetched description"
        assert bookmark.favicon == "https://cdn.example.com/favicon.ico"
        assert bookmark.metadata_status == METADATA_ENRICHED
        assert bookmark.tags == ["read"]
        _assert_search_text(bookmark)


def test_failed_enrichment_keeps_placeholder_metadata(app, monkeypatch):
    def failing_extract(url, **_options):
        return PageMetadata(
            title=url,
            description="",
            favicon="https://icons.test/example.com.png",
            error="timed out",
        )

    monkeypatch.setattr("doodl.jobs.enrichment.extract_metadata", failing_extract)

    with app.app_context():
        bookmark = store.add_bookmark(_ctx("alice"), "https://example.com/slow")

        assert bookmark.title == "https://example.com/slow"
        assert bookmark.description == ""
        assert bookmark.favicon == "https://icons.test/example.com.png"
        _assert_search_text(bookmark)


def test_explicit_metadata_skips_enrichment(app, monkeypatch):
    calls = []
    monkeypatch.setattr(
        "doodl.jobs.enrichment.extract_metadata",
        lambda url, **_options: calls.append(url),
    )

    with app.app_context():
        bookmark = store.add_bookmark(
            _ctx("alice"),
            "https://example.com/b",
            title="My title",
            description="Mine",
            favicon="https://example.com/f.png",
        )

        assert calls == []
        assert bookmark.title == "My title"
        assert bookmark.metadata_status == METADATA_PROVIDED
        _assert_search_text(bookmark)


def test_urls_are_unique_per_owner(app):
    with app.app_context():
        alice, bob = _ctx("alice"), _ctx("bob")
        store.add_bookmark(alice, "https://example.com/")

        with pytest.raises(ConflictError):
            store.add_bookmark(alice, "  https://example.com/  ")

        store.add_bookmark(bob, "https://example.com/")
        assert Bookmark.query.count() == 2
        assert store.list_urls(alice) == ["https://example.com/"]


def test_add_bookmark_requires_url_and_user(app):
    with app.app_context():
        with pytest.raises(ValidationError):
            store.add_bookmark(_ctx("alice"), "   ")
        with pytest.raises(AuthError):
            store.add_bookmark(ANONYMOUS, "https://example.com/")


def test_search_text_follows_every_mutation(app):
    with app.app_context():
        ctx = _ctx("alice")
        bookmark = store.add_bookmark(ctx, "https://example.com/c", title="Start")

        store.add_tag(ctx, bookmark.id, "  Python ")
        _assert_search_text(bookmark)
        assert bookmark.tags == ["python"]

        store.add_tag(ctx, bookmark.id, "python")
        assert bookmark.tags == ["python"]

        store.update_notes(ctx, bookmark.id, "remember this")
        _assert_search_text(bookmark)
        assert "remember this" in bookmark.search_text

        store.update_bookmark(ctx, bookmark.id, title="Renamed", description="New")
        _assert_search_text(bookmark)
        assert bookmark.search_text.startswith("https://example.com/c Renamed New")

        store.remove_tag(ctx, bookmark.id, "PYTHON")
        _assert_search_text(bookmark)
        assert bookmark.tags == []

        store.update_notes(ctx, bookmark.id, "   ")
        _assert_search_text(bookmark)
        assert bookmark.notes is None


def test_user_edit_wins_over_late_enrichment(app):
    app.config["ENRICHMENT_ENABLED"] = False
    with app.app_context():
        ctx = _ctx("alice")
        bookmark = store.add_bookmark(ctx, "https://example.com/race")
        assert bookmark.metadata_status == METADATA_PENDING
        captured_version = bookmark.metadata_version

        store.update_bookmark(ctx, bookmark.id, title="Typed by user")
        applied = apply_metadata(
            bookmark.id,
            ctx.user_id,
            captured_version,
            PageMetadata(title="Fetched", description="d", favicon=None),
        )

        assert applied is False
        db.session.refresh(bookmark)
        assert bookmark.title == "Typed by user"


def test_apply_metadata_patches_untouched_stub(app):
    app.config["ENRICHMENT_ENABLED"] = False
    with app.app_context():
        ctx = _ctx("alice")
        bookmark = store.add_bookmark(ctx, "https://example.com/later")

        applied = apply_metadata(
            bookmark.id,
            ctx.user_id,
            bookmark.metadata_version,
            PageMetadata(title="Later", description="d", favicon=None),
        )

        assert applied is True
        _assert_search_text(bookmark)
        assert bookmark.title == "Later"
        assert bookmark.metadata_status == METADATA_ENRICHED


def test_foreign_mutations_are_silent_no_ops(app):
    with app.app_context():
        alice, bob = _ctx("alice"), _ctx("bob")
        bookmark = store.add_bookmark(alice, "https://example.com/d", title="Mine")

        assert store.add_tag(bob, bookmark.id, "stolen") is None
        assert store.update_notes(bob, bookmark.id, "hi") is None
        assert store.update_bookmark(bob, bookmark.id, title="Nope") is None
        assert store.track_read(bob, bookmark.id) is False
        assert store.remove_bookmark(bob, bookmark.id) is False
        assert store.remove_bookmark(alice, 9999) is False

        db.session.refresh(bookmark)
        assert bookmark.title == "Mine"
        assert bookmark.tags == []
        assert bookmark.notes is None
        assert bookmark.read_count == 0


def test_track_read_increments(app):
    with app.app_context():
        ctx = _ctx("alice")
        bookmark = store.add_bookmark(ctx, "https://example.com/e", title="E")

        assert store.track_read(ctx, bookmark.id) is True
        assert store.track_read(ctx, bookmark.id) is True

        db.session.refresh(bookmark)
        assert bookmark.read_count == 2


def test_anonymous_reads_are_empty(app):
    with app.app_context():
        store.add_bookmark(_ctx("alice"), "https://example.com/f", title="F")

        assert store.list_bookmarks(ANONYMOUS) == []
        assert store.list_tags(ANONYMOUS) == []
        assert store.search_bookmarks(ANONYMOUS, "f") == []
        with pytest.raises(AuthError):
            store.add_tag(ANONYMOUS, 1, "x")


def test_bulk_operations_skip_foreign_ids(app):
    with app.app_context():
        alice, bob = _ctx("alice"), _ctx("bob")
        mine = [
            store.add_bookmark(alice, f"https://example.com/{n}", title=str(n)).id
            for n in range(3)
        ]
        theirs = store.add_bookmark(bob, "https://example.com/bob", title="Bob").id

        updated = store.bulk_add_tag(alice, [*mine, theirs, 9999], "Batch")
        assert updated == 3
        for item in store.list_bookmarks(alice):
            assert item.tags == ["batch"]
            _assert_search_text(item)
            assert item.search_text.endswith(" batch")
        assert store.list_bookmarks(bob)[0].tags == []

        assert store.bulk_add_tag(alice, mine, "batch") == 0

        deleted = store.bulk_remove(alice, [mine[0], theirs])
        assert deleted == 1
        assert len(store.list_bookmarks(alice)) == 2
        assert len(store.list_bookmarks(bob)) == 1


def test_listing_tags_and_search(app):
    with app.app_context():
        ctx = _ctx("alice")
        store.add_bookmark(
            ctx, "https://docs.python.org", title="Python docs", tags=["python", "docs"]
        )
        store.add_bookmark(
            ctx, "https://gardening.test", title="Gardening tips", tags=["garden"]
        )

        assert store.list_tags(ctx) == ["docs", "garden", "python"]
        results = store.search_bookmarks(ctx, "python")
        assert [item.title for item in results] == ["Python docs"]
        assert store.search_bookmarks(ctx, "   ") == []


def test_filter_by_tags_requires_all(app):
    with app.app_context():
        ctx = _ctx("alice")
        store.add_bookmark(ctx, "https://a.test", title="A", tags=["python", "web"])
        store.add_bookmark(ctx, "https://b.test", title="B", tags=["python"])

        items = store.filter_by_tags(store.list_bookmarks(ctx), ["python", "web"])
        assert [item.title for item in items] == ["A"]
        assert len(store.filter_by_tags(store.list_bookmarks(ctx), [])) == 2
