from flask import Blueprint, current_app, jsonify, request

from educonnect import academics, chat, feed, users
from educonnect.ai_assistant import answer_doubt
from educonnect.lookups import acting_user_id, current_viewer

routes = Blueprint('routes', __name__, url_prefix='/api')


def payload():
    data = request.get_json(silent=True)
    # Anything but a JSON object is treated as an empty body
    return data if isinstance(data, dict) else {}


# -------------------- REGISTRATION & USERS --------------------

@routes.route('/register', methods=['POST'])
def register():
    user = users.register_user(payload())
    current_app.logger.info("Registration synced for %s", user.external_id)
    return jsonify({"success": True})


@routes.route('/users/<user_id>')
def get_user(user_id):
    return jsonify(users.user_details(user_id))


@routes.route('/users/<user_id>/profile', methods=['PUT'])
def update_profile(user_id):
    users.update_profile(user_id, payload())
    return jsonify({"success": True})


@routes.route('/teachers')
def list_teachers():
    return jsonify({"teachers": users.list_teachers()})


@routes.route('/courses')
def list_courses():
    return jsonify({"courses": users.list_courses()})


@routes.route('/follow/<user_id>', methods=['POST'])
def follow(user_id):
    users.follow(user_id, acting_user_id(payload(), "followerId"))
    return jsonify({"success": True})


@routes.route('/unfollow/<user_id>', methods=['DELETE'])
def unfollow(user_id):
    users.unfollow(user_id, acting_user_id(payload(), "followerId"))
    return jsonify({"success": True})


# -------------------- FEED --------------------

@routes.route('/posts')
def get_feed():
    return jsonify({"posts": feed.build_feed(current_viewer())})


@routes.route('/posts', methods=['POST'])
def create_post():
    data = payload()
    post = feed.create_post(acting_user_id(data), data.get("content"), data.get("mediaUrl"))
    return jsonify(post), 201


@routes.route('/posts/<int:post_id>/like', methods=['POST'])
def like_post(post_id):
    data = payload()
    return jsonify(feed.toggle_reaction(post_id, acting_user_id(data), data.get("reactionType", "like")))


@routes.route('/posts/<int:post_id>/comments')
def get_comments(post_id):
    return jsonify({"comments": feed.list_comments(post_id)})


@routes.route('/posts/<int:post_id>/comment', methods=['POST'])
def add_comment(post_id):
    data = payload()
    return jsonify(feed.add_comment(post_id, acting_user_id(data), data.get("content"))), 201


# -------------------- ASSIGNMENTS --------------------

@routes.route('/assignments', methods=['POST'])
def create_assignment():
    academics.create_assignment(payload())
    return jsonify({"success": True})


@routes.route('/assignments')
def teacher_assignments():
    return jsonify({"assignments": academics.teacher_assignments(request.args.get('teacherId'))})


@routes.route('/assignments/student/<course>/<major>')
def student_assignments(course, major):
    student_id = acting_user_id(request.args, "studentId")
    return jsonify({"assignments": academics.student_assignments(course, major, student_id)})


@routes.route('/assignments/student')
def my_assignments():
    # Course and major come from the viewer's own student record
    viewer = current_viewer()
    if viewer is None or not viewer.is_student:
        return jsonify({"assignments": []})
    return jsonify({"assignments": academics.student_assignments(viewer.course, viewer.major, viewer.external_id)})


@routes.route('/assignments/<int:assignment_id>/submit', methods=['POST'])
def submit_assignment(assignment_id):
    data = payload()
    data.setdefault("studentId", acting_user_id(data, "studentId"))
    academics.submit_assignment(assignment_id, data)
    return jsonify({"success": True})


@routes.route('/assignments/<int:assignment_id>/submissions')
def assignment_submissions(assignment_id):
    return jsonify({"submissions": academics.assignment_submissions(assignment_id)})


# -------------------- NOTICES --------------------

@routes.route('/notices')
def list_notices():
    return jsonify({"notices": academics.list_notices()})


@routes.route('/notices', methods=['POST'])
def create_notice():
    data = payload()
    data.setdefault("authorId", acting_user_id(data, "authorId"))
    academics.create_notice(data)
    return jsonify({"success": True}), 201


# -------------------- DOUBTS --------------------

@routes.route('/queries', methods=['POST'])
def submit_query():
    academics.submit_query(payload())
    return jsonify({"success": True}), 201


@routes.route('/queries/teacher/<teacher_id>')
def teacher_queries(teacher_id):
    return jsonify({"queries": academics.teacher_queries(teacher_id)})


@routes.route('/queries/student/<student_id>')
def student_queries(student_id):
    return jsonify({"queries": academics.student_queries(student_id)})


@routes.route('/queries/<int:query_id>/answer', methods=['POST'])
def answer_query(query_id):
    academics.answer_query(query_id, payload())
    return jsonify({"success": True})


@routes.route('/ai/ask-doubt', methods=['POST'])
def ask_doubt():
    answer = answer_doubt(payload().get("question"), current_app.config)
    return jsonify({"answer": answer})


# -------------------- MESSAGING --------------------

@routes.route('/chat/start', methods=['POST'])
def start_chat():
    data = payload()
    return jsonify(chat.start_chat(data.get("participants"), data.get("name"))), 201


@routes.route('/chat/<int:chat_id>/message', methods=['POST'])
def send_message(chat_id):
    data = payload()
    return jsonify(chat.send_message(chat_id, acting_user_id(data), data.get("content"))), 201


@routes.route('/chat/<int:chat_id>/messages')
def get_messages(chat_id):
    return jsonify({"messages": chat.get_messages(chat_id)})


@routes.route('/chats/<user_id>')
def user_chats(user_id):
    return jsonify({"chats": chat.user_chats(user_id)})
