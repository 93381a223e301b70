from educonnect import db
from educonnect.models import Query


def submit(client, student, teacher, text="What is a monad?"):
    resp = client.post("/api/queries", json={"studentId": student, "teacherId": teacher, "queryText": text})
    assert resp.status_code == 201, resp.get_json()
    return client.get(f"/api/queries/teacher/{teacher}").get_json()["queries"][0]["id"]


def test_submit_requires_text_and_teacher(client, student, teacher, register):
    resp = client.post("/api/queries", json={"studentId": student, "teacherId": teacher, "queryText": "  "})
    assert resp.status_code == 400
    other = register("stu_2", "Student")
    resp = client.post("/api/queries", json={"studentId": student, "teacherId": other, "queryText": "hi"})
    assert resp.status_code == 400


def test_answer_transitions_once(app, client, student, teacher):
    query_id = submit(client, student, teacher)
    url = f"/api/queries/{query_id}/answer"

    assert client.post(url, json={"teacherId": teacher, "answer": "   "}).status_code == 400
    with app.app_context():
        assert db.session.get(Query, query_id).answered is False

    assert client.post(url, json={"teacherId": teacher, "answer": "A monoid in the category of endofunctors."}).status_code == 200
    assert client.post(url, json={"teacherId": teacher, "answer": "Changed my mind"}).status_code == 409

    with app.app_context():
        query = db.session.get(Query, query_id)
        assert query.answered is True
        assert query.answer == "A monoid in the category of endofunctors."
        assert query.answered_at is not None


def test_only_addressed_teacher_answers(client, student, teacher, register):
    other_teacher = register("tch_2", "Teacher")
    query_id = submit(client, student, teacher)
    resp = client.post(f"/api/queries/{query_id}/answer", json={"teacherId": other_teacher, "answer": "42"})
    assert resp.status_code == 403


def test_answer_missing_query(client, teacher):
    assert client.post("/api/queries/77/answer", json={"teacherId": teacher, "answer": "x"}).status_code == 404


def test_listings_carry_counterpart(client, student, teacher):
    query_id = submit(client, student, teacher)
    client.post(f"/api/queries/{query_id}/answer", json={"teacherId": teacher, "answer": "Read chapter 3"})

    teacher_view = client.get(f"/api/queries/teacher/{teacher}").get_json()["queries"]
    assert teacher_view[0]["student"]["userId"] == student

    student_view = client.get(f"/api/queries/student/{student}").get_json()["queries"]
    assert student_view[0]["teacherName"] == "Dr. Mehta"
    assert student_view[0]["answered"] is True
    assert student_view[0]["answer"] == "Read chapter 3"


def test_query_text_must_be_text(client, student, teacher):
    resp = client.post("/api/queries", json={"studentId": student, "teacherId": teacher, "queryText": 5})
    assert resp.status_code == 400
    assert client.get(f"/api/queries/teacher/{teacher}").get_json()["queries"] == []
