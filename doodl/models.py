import hashlib
import secrets
from datetime import datetime, timezone

from flask_login import UserMixin

from doodl.extensions import db, login_manager
from doodl.services.memo_text import (
    build_memo_search_text,
    extract_tags,
    has_nsfw_line,
)
from doodl.services.search_text import derive_search_text


METADATA_PENDING = "pending"
METADATA_ENRICHED = "enriched"
METADATA_PROVIDED = "provided"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything is stored as UTC.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _isoformat(value: datetime | None) -> str | None:
    value = ensure_utc(value)
    return value.isoformat() if value else None


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    auth_user_id = db.Column(db.String(255), unique=True, nullable=True, index=True)
    email = db.Column(db.String(320), unique=True, nullable=False, index=True)
    name = db.Column(db.String(255), nullable=True)
    image = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    def as_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "image": self.image,
        }


@login_manager.user_loader
def load_user(user_id: str):
    return db.session.get(User, int(user_id))


class Bookmark(db.Model):
    __tablename__ = "bookmarks"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True
    )

    url = db.Column(db.Text, nullable=False)
    title = db.Column(db.Text, nullable=False)
    description = db.Column(db.Text, nullable=False, default="")
    notes = db.Column(db.Text, nullable=True)
    favicon = db.Column(db.Text, nullable=True)
    tags = db.Column(db.JSON, nullable=False, default=list)
    read_count = db.Column(db.Integer, nullable=False, default=0)
    search_text = db.Column(db.Text, nullable=False, default="")
    metadata_status = db.Column(
        db.String(32), nullable=False, default=METADATA_PENDING
    )
    metadata_version = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    user = db.relationship("User", backref=db.backref("bookmarks", lazy=True))

    __table_args__ = (
        db.UniqueConstraint("user_id", "url", name="uq_bookmark_user_url"),
        db.Index("ix_bookmark_user_created", "user_id", "created_at"),
    )

    def refresh_search_text(self) -> None:
        self.search_text = derive_search_text(
            self.url,
            self.title,
            self.description,
            self.notes,
            self.tags or [],
        )

    def as_dict(self):
        return {
            "id": self.id,
            "url": self.url,
            "title": self.title,
            "description": self.description or "",
            "notes": self.notes,
            "favicon": self.favicon,
            "tags": list(self.tags or []),
            "read_count": self.read_count or 0,
            "metadata_status": self.metadata_status,
            "created_at": _isoformat(self.created_at),
            "updated_at": _isoformat(self.updated_at),
        }


class Memo(db.Model):
    __tablename__ = "memos"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True
    )
    content = db.Column(db.Text, nullable=False)
    tags = db.Column(db.JSON, nullable=False, default=list)
    search_text = db.Column(db.Text, nullable=False, default="")
    has_nsfw = db.Column(db.Boolean, nullable=False, default=False)
    is_pinned = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (db.Index("ix_memo_user_created", "user_id", "created_at"),)

    def set_content(self, content: str) -> None:
        """Store already-normalized content and every field derived from it."""
        self.content = content
        self.tags = extract_tags(content)
        self.search_text = build_memo_search_text(content, self.tags)
        self.has_nsfw = has_nsfw_line(content)
        self.updated_at = utcnow()

    def as_dict(self):
        return {
            "id": self.id,
            "content": self.content,
            "tags": list(self.tags or []),
            "has_nsfw": self.has_nsfw,
            "is_pinned": self.is_pinned,
            "created_at": _isoformat(self.created_at),
            "updated_at": _isoformat(self.updated_at),
        }


class Navigation(db.Model):
    __tablename__ = "navigations"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True
    )
    title = db.Column(db.Text, nullable=False)
    url = db.Column(db.Text, nullable=False)
    description = db.Column(db.Text, nullable=False, default="")
    favicon = db.Column(db.Text, nullable=True)
    position = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        db.UniqueConstraint("user_id", "url", name="uq_navigation_user_url"),
    )

    def as_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "description": self.description or "",
            "favicon": self.favicon,
            "position": self.position,
            "created_at": _isoformat(self.created_at),
        }


class ApiKey(db.Model):
    __tablename__ = "api_keys"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True
    )
    name = db.Column(db.String(120), nullable=False)
    prefix = db.Column(db.String(64), nullable=False)
    key_hash = db.Column(db.String(128), nullable=False, unique=True)
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    user = db.relationship("User", backref="api_keys")

    @staticmethod
    def hash_key(plaintext: str) -> str:
        return hashlib.sha256(plaintext.encode("utf-8")).hexdigest()

    @staticmethod
    def issue_key(prefix="doodl_"):
        secret = secrets.token_hex(32)
        plaintext = f"{prefix}{secret}"
        return plaintext, ApiKey.hash_key(plaintext), f"{prefix}{secret[:8]}"

    def as_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "prefix": self.prefix,
            "created_at": _isoformat(self.created_at),
            "last_used_at": _isoformat(self.last_used_at),
        }
