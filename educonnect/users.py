import logging

from sqlalchemy import func

from educonnect import db
from educonnect.errors import ValidationError
from educonnect.lookups import normalize, require_fields, get_user, display_name, get_internal_user_id
from educonnect.models import User, Profile, Student, Teacher, Course, Follow, ROLES, ROLE_STUDENT, ROLE_TEACHER

logger = logging.getLogger(__name__)


def register_user(payload):
    """Create or update the rows for an identity-provider user.

    Keyed by the external id, so repeated registration never duplicates rows.
    """
    require_fields(payload, "userId", "email", "role", message="Missing required registration fields")
    external_id = str(payload["userId"]).strip()
    email = str(payload["email"]).strip()
    role = payload["role"]
    if role not in ROLES:
        raise ValidationError(f"Invalid role: {role}")

    name = normalize(payload.get("name")) or email.split("@")[0]

    user = User.query.filter_by(external_id=external_id).first()
    if user is None:
        user = User(external_id=external_id, email=email, role=role)
        db.session.add(user)
        db.session.flush()
        logger.info("Registered new %s %s", role, external_id)
    else:
        if user.role != role:
            raise ValidationError("Role cannot be changed after registration")
        user.email = email

    if user.profile is None:
        user.profile = Profile(username=name, name=name)
    else:
        user.profile.username = name
        user.profile.name = name

    if role == ROLE_STUDENT:
        if user.student is None:
            user.student = Student()
        user.student.course = normalize(payload.get("course"))
        user.student.major = normalize(payload.get("major"))
    elif user.teacher is None:
        user.teacher = Teacher(subjects=[])

    db.session.commit()
    return user


def user_details(external_id):
    user = get_user(external_id)
    profile = user.profile
    return {
        "id": user.id,
        "userId": user.external_id,
        "email": user.email,
        "role": user.role,
        "username": profile.username if profile else None,
        "name": profile.name if profile else None,
        "bio": profile.bio if profile else None,
        "followersCount": profile.followers_count if profile else 0,
        "followingCount": profile.following_count if profile else 0,
        "course": user.student.course if user.student else None,
        "major": user.student.major if user.student else None,
        "subjects": list(user.teacher.subjects or []) if user.teacher else [],
    }


def update_profile(external_id, payload):
    user = get_user(external_id)
    if user.profile is None:
        user.profile = Profile()

    for field in ("username", "name", "bio"):
        if field in payload:
            if payload[field] is not None and not isinstance(payload[field], str):
                raise ValidationError(f"{field} must be text")
            setattr(user.profile, field, payload[field])

    if payload.get("subjects") is not None:
        if user.role != ROLE_TEACHER:
            raise ValidationError("Only teachers have subjects")
        if not isinstance(payload["subjects"], list):
            raise ValidationError("subjects must be a list")
        if user.teacher is None:
            user.teacher = Teacher()
        user.teacher.subjects = [s.strip() for s in payload["subjects"] if isinstance(s, str) and s.strip()]

    db.session.commit()


def list_teachers():
    teachers = User.query.filter_by(role=ROLE_TEACHER).order_by(User.created_at.asc(), User.id.asc()).all()
    return [{
        "id": t.external_id,
        "email": t.email,
        "role": t.role,
        "name": display_name(t.profile, t.email),
        "username": t.profile.username if t.profile else None,
    } for t in teachers]


def list_courses():
    courses = Course.query.order_by(Course.name).all()
    return [{
        "id": c.id,
        "code": c.code,
        "name": c.name,
        "majors": [m.name for m in c.majors],
    } for c in courses]


# -------------------- FOLLOWS --------------------

def _refresh_follow_counts(*user_ids):
    # Counts are rewritten from the follows table, never incremented
    for user_id in user_ids:
        profile = db.session.get(Profile, user_id)
        if profile is None:
            continue
        profile.followers_count = db.session.query(func.count()).select_from(Follow).filter(
            Follow.following_id == user_id).scalar()
        profile.following_count = db.session.query(func.count()).select_from(Follow).filter(
            Follow.follower_id == user_id).scalar()


def _follow_pair(following_external_id, follower_external_id):
    if not follower_external_id or not following_external_id:
        raise ValidationError("Follower and following ids are required")
    follower_id = get_internal_user_id(follower_external_id)
    following_id = get_internal_user_id(following_external_id)
    if follower_id == following_id:
        raise ValidationError("You cannot follow yourself")
    return follower_id, following_id


def follow(following_external_id, follower_external_id):
    follower_id, following_id = _follow_pair(following_external_id, follower_external_id)
    if db.session.get(Follow, (follower_id, following_id)) is None:
        db.session.add(Follow(follower_id=follower_id, following_id=following_id))
        db.session.flush()
    _refresh_follow_counts(follower_id, following_id)
    db.session.commit()


def unfollow(following_external_id, follower_external_id):
    follower_id, following_id = _follow_pair(following_external_id, follower_external_id)
    Follow.query.filter_by(follower_id=follower_id, following_id=following_id).delete()
    db.session.flush()
    _refresh_follow_counts(follower_id, following_id)
    db.session.commit()
