from __future__ import annotations

import threading

from flask import Flask
from sqlalchemy.exc import SQLAlchemyError

from doodl.extensions import db
from doodl.jobs.scheduler import scheduler, scheduler_running
from doodl.models import METADATA_ENRICHED, METADATA_PENDING, Bookmark
from doodl.services.metadata import (
    PageMetadata,
    extract_metadata,
    options_from_config,
)


def schedule_enrichment(
    app: Flask, bookmark_id: int, user_id: int, version: int
) -> None:
    """Queue the single metadata pass that follows a bookmark insert."""
    if not app.config.get("ENRICHMENT_ENABLED", True):
        return

    kwargs = {
        "app": app,
        "bookmark_id": bookmark_id,
        "user_id": user_id,
        "version": version,
    }
    if scheduler_running():
        scheduler.add_job(
            run_enrichment,
            "date",
            kwargs=kwargs,
            id=f"enrich-bookmark-{bookmark_id}",
            replace_existing=True,
            misfire_grace_time=None,
        )
        return
    if app.config.get("ENRICHMENT_INLINE"):
        run_enrichment(**kwargs)
        return

    worker = threading.Thread(
        target=run_enrichment,
        kwargs=kwargs,
        daemon=True,
        name=f"enrich-bookmark-{bookmark_id}",
    )
    worker.start()


def apply_metadata(
    bookmark_id: int, user_id: int, version: int, metadata: PageMetadata
) -> bool:
    """Patch a stub bookmark with extracted metadata.

    Applies only while the row still exists, is still pending and has not
    been edited since the enrichment was scheduled.
    """
    bookmark = Bookmark.query.filter_by(id=bookmark_id, user_id=user_id).first()
    if not bookmark:
        return False
    if bookmark.metadata_status != METADATA_PENDING:
        return False
    if (bookmark.metadata_version or 0) != version:
        return False

    bookmark.title = metadata.title or bookmark.url
    bookmark.description = metadata.description or ""
    bookmark.favicon = metadata.favicon
    bookmark.metadata_status = METADATA_ENRICHED
    bookmark.refresh_search_text()
    db.session.commit()
    return True


def run_enrichment(app: Flask, bookmark_id: int, user_id: int, version: int) -> None:
    with app.app_context():
        db.session.remove()
        try:
            bookmark = Bookmark.query.filter_by(
                id=bookmark_id, user_id=user_id
            ).first()
            if not bookmark:
                return
            url = bookmark.url

            metadata = extract_metadata(url, **options_from_config(app.config))
            if metadata.error:
                app.logger.info(
                    "Metadata fetch for bookmark %s fell back to defaults: %s",
                    bookmark_id,
                    metadata.error,
                )

            if not apply_metadata(bookmark_id, user_id, version, metadata):
                app.logger.info(
                    "Skipped enrichment for bookmark %s (user %s): row changed",
                    bookmark_id,
                    user_id,
                )
        except SQLAlchemyError as exc:
            db.session.rollback()
            app.logger.warning(
                "Failed enrichment for bookmark %s (user %s): %s",
                bookmark_id,
                user_id,
                exc,
            )
        finally:
            db.session.remove()
