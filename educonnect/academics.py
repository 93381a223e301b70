"""Assignments, submissions, notices and student doubts."""
import logging
from datetime import datetime

from sqlalchemy import func

from educonnect import db
from educonnect.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from educonnect.lookups import (
    fetch_user_summaries, get_user, isoformat, normalize, parse_datetime, require_fields, summary_field,
)
from educonnect.models import Assignment, Submission, Notice, Query, NOTICE_TYPES, ROLE_STUDENT, ROLE_TEACHER

logger = logging.getLogger(__name__)


def _require_role(user, role, action):
    if user.role != role:
        raise ForbiddenError(f"Only a {role} can {action}")


def _assignment_view(assignment):
    return {
        "id": assignment.id,
        "title": assignment.title,
        "details": assignment.details,
        "dueDate": isoformat(assignment.due_date),
        "course": assignment.course,
        "major": assignment.major,
        "createdAt": isoformat(assignment.created_at),
    }


# -------------------- ASSIGNMENTS --------------------

def create_assignment(payload):
    require_fields(payload, "teacherId", "course", "major", "title", "details", "dueDate",
                   message="Missing required assignment fields")
    teacher = get_user(payload["teacherId"])
    _require_role(teacher, ROLE_TEACHER, "create assignments")

    assignment = Assignment(
        teacher_id=teacher.id,
        course=normalize(payload["course"]),
        major=normalize(payload["major"]),
        title=payload["title"].strip(),
        details=payload["details"],
        due_date=parse_datetime(payload["dueDate"], "dueDate"),
    )
    db.session.add(assignment)
    db.session.commit()
    logger.info("Assignment %s created by %s", assignment.id, teacher.external_id)
    return assignment


def teacher_assignments(teacher_external_id):
    if not teacher_external_id:
        raise ValidationError("Missing teacherId")
    teacher = get_user(teacher_external_id)
    assignments = Assignment.query.filter_by(teacher_id=teacher.id) \
        .order_by(Assignment.created_at.desc(), Assignment.id.desc()).all()
    return [_assignment_view(a) for a in assignments]


def student_assignments(course, major, student_external_id):
    course = normalize(course)
    major = normalize(major)
    if not course or not major:
        return []

    student = get_user(student_external_id)
    assignments = Assignment.query.filter(
        func.lower(Assignment.course) == course.lower(),
        func.lower(Assignment.major) == major.lower(),
    ).order_by(Assignment.created_at.desc(), Assignment.id.desc()).all()

    submitted_ids = {s.assignment_id for s in Submission.query.filter_by(student_id=student.id).all()}

    views = []
    for assignment in assignments:
        view = _assignment_view(assignment)
        view["submitted"] = assignment.id in submitted_ids
        views.append(view)
    return views


def _get_assignment(assignment_id):
    assignment = db.session.get(Assignment, assignment_id)
    if assignment is None:
        raise NotFoundError(f"Assignment not found: {assignment_id}")
    return assignment


def submit_assignment(assignment_id, payload):
    require_fields(payload, "studentId", "submissionDetails", message="Missing required submission fields")
    assignment = _get_assignment(assignment_id)
    student = get_user(payload["studentId"])
    _require_role(student, ROLE_STUDENT, "submit assignments")

    # One submission per (assignment, student); resubmitting replaces it
    submission = Submission.query.filter_by(assignment_id=assignment.id, student_id=student.id).first()
    if submission is None:
        submission = Submission(assignment_id=assignment.id, student_id=student.id)
        db.session.add(submission)
    submission.submission_details = payload["submissionDetails"]
    submission.submitted_at = datetime.utcnow()
    db.session.commit()
    return submission


def assignment_submissions(assignment_id):
    assignment = _get_assignment(assignment_id)
    submissions = Submission.query.filter_by(assignment_id=assignment.id) \
        .order_by(Submission.submitted_at.desc(), Submission.id.desc()).all()
    summaries = fetch_user_summaries({s.student_id for s in submissions})

    return [{
        "id": s.id,
        "submissionDetails": s.submission_details,
        "submittedAt": isoformat(s.submitted_at),
        "studentId": summary_field(summaries, s.student_id),
        "student": summaries.get(s.student_id),
    } for s in submissions]


# -------------------- NOTICES --------------------

def list_notices():
    notices = Notice.query.order_by(Notice.published_at.desc(), Notice.id.desc()).all()
    summaries = fetch_user_summaries({n.author_id for n in notices})
    return [{
        "id": n.id,
        "title": n.title,
        "content": n.content,
        "type": n.type,
        "createdAt": isoformat(n.published_at),
        "authorId": summary_field(summaries, n.author_id),
        "author": summaries.get(n.author_id),
    } for n in notices]


def create_notice(payload):
    require_fields(payload, "authorId", "title", "content", message="Missing required notice fields")
    notice_type = payload.get("type") or "Notice"
    if notice_type not in NOTICE_TYPES:
        raise ValidationError(f"Invalid notice type: {notice_type}")

    author = get_user(payload["authorId"])
    _require_role(author, ROLE_TEACHER, "publish notices")

    notice = Notice(author_id=author.id, type=notice_type, title=payload["title"].strip(),
                    content=payload["content"])
    db.session.add(notice)
    db.session.commit()
    return notice


# -------------------- DOUBTS --------------------

def _query_view(query):
    return {
        "id": query.id,
        "queryText": query.query_text,
        "answer": query.answer,
        "answered": query.answered,
        "createdAt": isoformat(query.created_at),
        "answeredAt": isoformat(query.answered_at),
    }


def submit_query(payload):
    require_fields(payload, "studentId", "teacherId", "queryText", message="Please select a teacher and enter your query")
    student = get_user(payload["studentId"])
    teacher = get_user(payload["teacherId"])
    if teacher.role != ROLE_TEACHER:
        raise ValidationError("Queries can only be sent to a teacher")

    query = Query(student_id=student.id, teacher_id=teacher.id, query_text=payload["queryText"].strip(),
                  answered=False)
    db.session.add(query)
    db.session.commit()
    return query


def teacher_queries(teacher_external_id):
    teacher = get_user(teacher_external_id)
    queries = Query.query.filter_by(teacher_id=teacher.id).order_by(Query.created_at.desc(), Query.id.desc()).all()
    summaries = fetch_user_summaries({q.student_id for q in queries})

    views = []
    for query in queries:
        view = _query_view(query)
        view["student"] = summaries.get(query.student_id)
        views.append(view)
    return views


def student_queries(student_external_id):
    student = get_user(student_external_id)
    queries = Query.query.filter_by(student_id=student.id).order_by(Query.created_at.desc(), Query.id.desc()).all()
    summaries = fetch_user_summaries({q.teacher_id for q in queries})

    views = []
    for query in queries:
        teacher = summaries.get(query.teacher_id)
        view = _query_view(query)
        view["teacherName"] = (teacher or {}).get("name") or "Teacher"
        view["teacher"] = teacher
        views.append(view)
    return views


def answer_query(query_id, payload):
    """Submitted -> Answered. The only transition a query has."""
    answer = normalize(payload.get("answer"))
    if not answer:
        raise ValidationError("Please enter an answer")

    teacher = get_user(payload.get("teacherId"))
    query = db.session.get(Query, query_id)
    if query is None:
        raise NotFoundError(f"Query not found: {query_id}")
    if query.teacher_id != teacher.id:
        raise ForbiddenError("Only the addressed teacher can answer this query")

    # Conditional update so two concurrent answers cannot both win
    updated = Query.query.filter_by(id=query.id, answered=False).update(
        {"answer": answer, "answered": True, "answered_at": datetime.utcnow()})
    if not updated:
        raise ConflictError("Query has already been answered")
    db.session.commit()
    db.session.refresh(query)
    return query
