"""Direct and group messaging."""
from educonnect import db
from educonnect.errors import ForbiddenError, NotFoundError, ValidationError
from educonnect.lookups import (
    fetch_user_summaries, get_internal_user_id, isoformat, normalize, select_by_ids, summary_field,
)
from educonnect.models import Chat, ChatMember, Message


def _message_view(message, summaries):
    return {
        "id": message.id,
        "chatId": message.chat_id,
        "userId": summary_field(summaries, message.sender_id),
        "content": message.content,
        "createdAt": isoformat(message.created_at),
    }


def start_chat(participants, name=None):
    if participants is not None and not isinstance(participants, list):
        raise ValidationError("participants must be a list")
    if any(p and not isinstance(p, str) for p in (participants or [])):
        raise ValidationError("participants must be user ids")
    participants = list(dict.fromkeys(p for p in (participants or []) if p))
    if len(participants) < 2:
        raise ValidationError("At least two participants are required to start a chat")

    member_ids = [get_internal_user_id(p) for p in participants]
    chat = Chat(name=normalize(name), is_group=len(participants) > 2)
    chat.members = [ChatMember(user_id=user_id) for user_id in member_ids]
    db.session.add(chat)
    db.session.commit()

    return {"id": chat.id, "name": chat.name, "isGroup": chat.is_group, "participants": participants}


def _get_chat(chat_id):
    chat = db.session.get(Chat, chat_id)
    if chat is None:
        raise NotFoundError(f"Chat not found: {chat_id}")
    return chat


def send_message(chat_id, user_external_id, content):
    if not normalize(content):
        raise ValidationError("Message cannot be empty")
    chat = _get_chat(chat_id)
    sender_id = get_internal_user_id(user_external_id)
    if not ChatMember.query.filter_by(chat_id=chat.id, user_id=sender_id).first():
        raise ForbiddenError("You are not a member of this chat")

    message = Message(chat_id=chat.id, sender_id=sender_id, content=content)
    db.session.add(message)
    db.session.commit()
    return _message_view(message, fetch_user_summaries([sender_id]))


def get_messages(chat_id):
    chat = _get_chat(chat_id)
    messages = Message.query.filter_by(chat_id=chat.id).order_by(Message.created_at.asc(), Message.id.asc()).all()
    summaries = fetch_user_summaries({m.sender_id for m in messages})
    return [_message_view(m, summaries) for m in messages]


def user_chats(user_external_id):
    """Chats the user belongs to, most recently active first."""
    user_id = get_internal_user_id(user_external_id)
    chat_ids = [row.chat_id for row in ChatMember.query.filter_by(user_id=user_id).all()]
    if not chat_ids:
        return []

    chats = select_by_ids(Chat, "id", chat_ids)
    members = select_by_ids(ChatMember, "chat_id", chat_ids)
    messages = sorted(select_by_ids(Message, "chat_id", chat_ids), key=lambda m: (m.created_at, m.id))

    user_ids = {m.user_id for m in members}
    user_ids.update(m.sender_id for m in messages)
    summaries = fetch_user_summaries(user_ids)

    members_by_chat = {}
    for member in members:
        members_by_chat.setdefault(member.chat_id, []).append(member.user_id)

    last_message = {}
    for message in messages:
        last_message[message.chat_id] = message

    ranked = []
    for chat in chats:
        participants = [summaries[uid] for uid in members_by_chat.get(chat.id, []) if uid in summaries]
        other = next((p for p in participants if p["userId"] != user_external_id), None)
        latest = last_message.get(chat.id)
        last_at = latest.created_at if latest else chat.created_at
        ranked.append(((last_at, chat.id), {
            "id": chat.id,
            "name": chat.name,
            "isGroup": chat.is_group,
            "participant": other or (participants[0] if participants else None),
            "participants": participants,
            "lastMessage": latest.content if latest else "",
            "lastMessageAt": isoformat(last_at),
        }))

    ranked.sort(key=lambda pair: pair[0], reverse=True)
    return [view for _, view in ranked]
