import pytest

from educonnect import create_app, db


@pytest.fixture
def app():
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "GEMINI_API_KEY": None,
        "GROQ_API_KEY": None,
        "GEMINI_API_BASE": "https://ai.test",
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def register(client):
    def _register(user_id, role="Student", email=None, **extra):
        body = {"userId": user_id, "email": email or f"{user_id}@college.edu", "role": role}
        body.update(extra)
        resp = client.post("/api/register", json=body)
        assert resp.status_code == 200, resp.get_json()
        return user_id
    return _register


@pytest.fixture
def student(register):
    return register("stu_1", "Student", name="Asha Rao", course="B.Tech", major="Computer Science")


@pytest.fixture
def teacher(register):
    return register("tch_1", "Teacher", name="Dr. Mehta")
