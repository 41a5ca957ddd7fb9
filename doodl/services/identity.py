from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError

from doodl.extensions import db
from doodl.models import User
from doodl.services.errors import ConflictError, ValidationError


EMAIL_TAKEN_MESSAGE = "This email is linked to another account"


@dataclass
class AuthProfile:
    """A user as verified by the external auth platform."""

    subject: str
    email: str
    name: str | None = None
    image: str | None = None


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def find_user(profile: AuthProfile) -> User | None:
    """Look up by external subject first, then by email to link providers."""
    if profile.subject:
        user = User.query.filter_by(auth_user_id=profile.subject).first()
        if user:
            return user
    email = normalize_email(profile.email)
    if email:
        return User.query.filter_by(email=email).first()
    return None


def ensure_user(profile: AuthProfile) -> User:
    subject = (profile.subject or "").strip()
    email = normalize_email(profile.email)
    if not subject or not email:
        raise ValidationError("subject and email are required")

    fields = {
        "auth_user_id": subject,
        "email": email,
        "name": profile.name,
        "image": profile.image or None,
    }
    user = find_user(AuthProfile(subject=subject, email=email))
    if user is not None and user.email != email:
        holder = User.query.filter_by(email=email).first()
        if holder is not None and holder.id != user.id:
            raise ConflictError(EMAIL_TAKEN_MESSAGE)

    if user is None:
        user = User(**fields)
        db.session.add(user)
    elif any(getattr(user, key) != value for key, value in fields.items()):
        for key, value in fields.items():
            setattr(user, key, value)
    else:
        return user

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(EMAIL_TAKEN_MESSAGE)
    return user
