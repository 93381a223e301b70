"""Shared lookups: external-id resolution, batched user summaries, the
per-request viewer and small payload helpers."""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from flask import g, request

from educonnect.errors import NotFoundError, ValidationError
from educonnect.models import User, Profile, ROLE_STUDENT


def normalize(value):
    return value.strip() if isinstance(value, str) and value.strip() else None


def isoformat(value):
    return value.isoformat() if value else None


def require_fields(payload, *names, message="Missing required fields"):
    """Every named field must be present as non-blank text."""
    missing = [n for n in names if payload.get(n) in (None, "") or
               (isinstance(payload.get(n), str) and not payload.get(n).strip())]
    if missing:
        raise ValidationError(f"{message}: {', '.join(missing)}")
    not_text = [n for n in names if not isinstance(payload.get(n), str)]
    if not_text:
        raise ValidationError(f"Expected text for: {', '.join(not_text)}")


def parse_datetime(value, field="date"):
    if not isinstance(value, datetime):
        try:
            value = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
        except ValueError:
            raise ValidationError(f"Invalid {field}: {value}")
    # Stored naive in UTC like every other timestamp
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def get_user(external_id):
    if not external_id:
        raise ValidationError("Missing user id")
    if not isinstance(external_id, str):
        raise ValidationError("User id must be text")
    user = User.query.filter_by(external_id=external_id).first()
    if not user:
        raise NotFoundError(f"User not found: {external_id}")
    return user


def get_internal_user_id(external_id):
    return get_user(external_id).id


def select_by_ids(model, column, ids):
    """Rows of ``model`` whose ``column`` is in ``ids`` (deduplicated)."""
    unique = {i for i in ids if i is not None}
    if not unique:
        return []
    return model.query.filter(getattr(model, column).in_(unique)).all()


def display_name(profile, email):
    if profile is not None and (profile.name or profile.username):
        return profile.name or profile.username
    if email:
        return email.split("@")[0]
    return "User"


def fetch_user_summaries(user_ids):
    """Map internal user id -> {userId, email, name, username}.

    Two batched queries regardless of how many ids are passed.
    """
    users = select_by_ids(User, "id", user_ids)
    profiles = {p.user_id: p for p in select_by_ids(Profile, "user_id", [u.id for u in users])}

    summaries = {}
    for user in users:
        profile = profiles.get(user.id)
        summaries[user.id] = {
            "userId": user.external_id,
            "email": user.email,
            "name": display_name(profile, user.email),
            "username": profile.username if profile else None,
        }
    return summaries


def summary_field(summaries, user_id, field="userId"):
    summary = summaries.get(user_id)
    return summary.get(field) if summary else None


# -------------------- VIEWER CONTEXT --------------------

@dataclass(frozen=True)
class Viewer:
    """Who is looking at a screen, resolved once per request."""
    user_id: int
    external_id: str
    role: str
    course: Optional[str] = None
    major: Optional[str] = None

    @property
    def is_student(self):
        return self.role == ROLE_STUDENT


def current_viewer():
    """Viewer for the ``X-User-Id`` header, or None when absent or unknown."""
    if "viewer" in g:
        return g.viewer

    viewer = None
    external_id = request.headers.get("X-User-Id")
    if external_id:
        user = User.query.filter_by(external_id=external_id).first()
        if user:
            student = user.student
            viewer = Viewer(
                user_id=user.id,
                external_id=user.external_id,
                role=user.role,
                course=student.course if student else None,
                major=student.major if student else None,
            )
    g.viewer = viewer
    return viewer


def acting_user_id(payload, key="userId"):
    """External id from the payload, falling back to the request viewer."""
    external_id = payload.get(key)
    if external_id and not isinstance(external_id, str):
        raise ValidationError(f"{key} must be text")
    if not external_id:
        viewer = current_viewer()
        external_id = viewer.external_id if viewer else None
    if not external_id:
        raise ValidationError(f"Missing {key}")
    return external_id
