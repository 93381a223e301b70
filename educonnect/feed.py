"""Posts, reactions and comments.

The feed is assembled with one query per table: posts, then reactions and
comments for the post-id set, then user summaries for every id involved.
"""
import logging

from educonnect import db
from educonnect.errors import NotFoundError, ValidationError
from educonnect.lookups import (
    fetch_user_summaries, get_internal_user_id, isoformat, normalize, select_by_ids, summary_field,
)
from educonnect.models import Post, Reaction, Comment

logger = logging.getLogger(__name__)


def _reaction_view(reaction, summaries):
    return {
        "id": reaction.id,
        "postId": reaction.post_id,
        "userId": summary_field(summaries, reaction.user_id),
        "reactionType": reaction.reaction_type,
        "createdAt": isoformat(reaction.created_at),
        "user": summaries.get(reaction.user_id),
    }


def _comment_view(comment, summaries):
    return {
        "id": comment.id,
        "postId": comment.post_id,
        "userId": summary_field(summaries, comment.user_id),
        "content": comment.content,
        "createdAt": isoformat(comment.created_at),
        "user": summaries.get(comment.user_id),
    }


def _post_view(post, summaries, likes, comments, viewer=None):
    return {
        "id": post.id,
        "authorId": summary_field(summaries, post.author_id),
        "content": post.content,
        "mediaUrl": post.media_url,
        "createdAt": isoformat(post.created_at),
        "author": summaries.get(post.author_id),
        "likes": likes,
        "comments": comments,
        "likeCount": len(likes),
        "commentCount": len(comments),
        "likedByViewer": bool(viewer) and any(like["userId"] == viewer.external_id for like in likes),
    }


def build_feed(viewer=None):
    posts = Post.query.order_by(Post.created_at.desc(), Post.id.desc()).all()
    if not posts:
        return []

    post_ids = [p.id for p in posts]
    reactions = select_by_ids(Reaction, "post_id", post_ids)
    comments = sorted(select_by_ids(Comment, "post_id", post_ids), key=lambda c: (c.created_at, c.id))

    user_ids = {p.author_id for p in posts}
    user_ids.update(r.user_id for r in reactions)
    user_ids.update(c.user_id for c in comments)
    summaries = fetch_user_summaries(user_ids)

    reactions_by_post = {}
    for reaction in reactions:
        reactions_by_post.setdefault(reaction.post_id, []).append(_reaction_view(reaction, summaries))

    comments_by_post = {}
    for comment in comments:
        comments_by_post.setdefault(comment.post_id, []).append(_comment_view(comment, summaries))

    return [
        _post_view(post, summaries, reactions_by_post.get(post.id, []), comments_by_post.get(post.id, []), viewer)
        for post in posts
    ]


def create_post(author_external_id, content, media_url=None):
    if not normalize(content):
        raise ValidationError("Post content cannot be empty")
    author_id = get_internal_user_id(author_external_id)

    post = Post(author_id=author_id, content=content, media_url=normalize(media_url))
    db.session.add(post)
    db.session.commit()
    logger.info("Post %s created by %s", post.id, author_external_id)

    return _post_view(post, fetch_user_summaries([author_id]), [], [])


def _get_post(post_id):
    post = db.session.get(Post, post_id)
    if post is None:
        raise NotFoundError(f"Post not found: {post_id}")
    return post


def toggle_reaction(post_id, user_external_id, reaction_type="like"):
    """Like when no reaction exists for (post, user), otherwise unlike."""
    post = _get_post(post_id)
    user_id = get_internal_user_id(user_external_id)

    existing = Reaction.query.filter_by(post_id=post.id, user_id=user_id).first()
    if existing:
        db.session.delete(existing)
        liked = False
    else:
        db.session.add(Reaction(post_id=post.id, user_id=user_id, reaction_type=reaction_type or "like"))
        liked = True
    db.session.commit()

    like_count = Reaction.query.filter_by(post_id=post.id).count()
    return {"success": True, "liked": liked, "likeCount": like_count}


def add_comment(post_id, user_external_id, content):
    if not normalize(content):
        raise ValidationError("Comment cannot be empty")
    post = _get_post(post_id)
    user_id = get_internal_user_id(user_external_id)

    comment = Comment(post_id=post.id, user_id=user_id, content=content)
    db.session.add(comment)
    db.session.commit()

    return _comment_view(comment, fetch_user_summaries([user_id]))


def list_comments(post_id):
    post = _get_post(post_id)
    comments = Comment.query.filter_by(post_id=post.id).order_by(Comment.created_at.asc(), Comment.id.asc()).all()
    summaries = fetch_user_summaries({c.user_id for c in comments})
    return [_comment_view(c, summaries) for c in comments]
