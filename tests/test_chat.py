def start(client, participants, name=None):
    resp = client.post("/api/chat/start", json={"participants": participants, "name": name})
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


def test_start_chat_needs_two_people(client, student):
    assert client.post("/api/chat/start", json={"participants": [student]}).status_code == 400
    assert client.post("/api/chat/start", json={"participants": [student, student]}).status_code == 400


def test_start_chat_rejects_malformed_participants(client, student, teacher):
    for participants in (f"{student},{teacher}", [student, {"id": teacher}], {"a": student}):
        assert client.post("/api/chat/start", json={"participants": participants}).status_code == 400


def test_group_flag(client, student, teacher, register):
    other = register("stu_2", "Student")
    assert start(client, [student, teacher])["isGroup"] is False
    assert start(client, [student, teacher, other], name="Project")["isGroup"] is True


def test_send_and_read_messages(client, student, teacher):
    chat_id = start(client, [student, teacher])["id"]

    resp = client.post(f"/api/chat/{chat_id}/message", json={"userId": student, "content": "Hi professor"})
    assert resp.status_code == 201
    assert resp.get_json()["userId"] == student
    client.post(f"/api/chat/{chat_id}/message", json={"userId": teacher, "content": "Hello"})

    messages = client.get(f"/api/chat/{chat_id}/messages").get_json()["messages"]
    assert [m["content"] for m in messages] == ["Hi professor", "Hello"]
    assert [m["userId"] for m in messages] == [student, teacher]


def test_message_rules(client, student, teacher, register):
    outsider = register("stu_3", "Student")
    chat_id = start(client, [student, teacher])["id"]
    assert client.post(f"/api/chat/{chat_id}/message", json={"userId": student, "content": " "}).status_code == 400
    assert client.post(f"/api/chat/{chat_id}/message", json={"userId": outsider, "content": "hey"}).status_code == 403
    assert client.post("/api/chat/999/message", json={"userId": student, "content": "hey"}).status_code == 404


def test_user_chats_sorted_by_activity(client, student, teacher, register):
    other = register("stu_2", "Student", name="Ravi")
    quiet = start(client, [student, teacher])["id"]
    busy = start(client, [student, other])["id"]
    client.post(f"/api/chat/{busy}/message", json={"userId": other, "content": "notes?"})
    client.post(f"/api/chat/{quiet}/message", json={"userId": teacher, "content": "office hours moved"})

    chats = client.get(f"/api/chats/{student}").get_json()["chats"]
    assert [c["id"] for c in chats] == [quiet, busy]
    assert chats[0]["participant"]["userId"] == teacher
    assert chats[0]["lastMessage"] == "office hours moved"
    assert chats[1]["participant"]["name"] == "Ravi"
    assert len(chats[1]["participants"]) == 2

    assert client.get(f"/api/chats/{teacher}").get_json()["chats"][0]["id"] == quiet


def test_user_without_chats(client, student):
    assert client.get(f"/api/chats/{student}").get_json() == {"chats": []}
