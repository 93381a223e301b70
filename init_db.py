from educonnect import create_app, db
from educonnect.models import Course, Major

# Course catalog offered on the assignment screens
DEFAULT_COURSES = {
    ("BTECH", "B.Tech"): ["Computer Science", "Electronics", "Mechanical", "Civil"],
    ("BSC", "B.Sc"): ["Physics", "Chemistry", "Mathematics"],
    ("BCA", "BCA"): ["Computer Applications"],
    ("BBA", "BBA"): ["Finance", "Marketing"],
}


def seed_courses():
    created = 0
    for (code, name), majors in DEFAULT_COURSES.items():
        if Course.query.filter_by(code=code).first():
            continue
        db.session.add(Course(code=code, name=name, majors=[Major(name=m) for m in majors]))
        created += 1
    db.session.commit()
    return created


def init_database():
    app = create_app()
    with app.app_context():
        try:
            db.create_all()
            created = seed_courses()
            app.logger.info("Database tables created, %d courses seeded.", created)
        except Exception:
            db.session.rollback()
            app.logger.exception("Database setup failed")
            raise


if __name__ == "__main__":
    init_database()
