"""Sample upstream payloads."""

from typing import Any


def generate_post(post_id: int = 1, user_id: int = 1, **overrides: Any) -> dict[str, Any]:
    """Generate a post payload in the upstream's vocabulary."""
    post = {
        "userId": user_id,
        "id": post_id,
        "title": "sunt aut facere",
        "body": "quia et suscipit",
    }
    post.update(overrides)
    return post


def generate_comment(comment_id: int = 1, post_id: int = 1, **overrides: Any) -> dict[str, Any]:
    """Generate a comment payload in the upstream's vocabulary."""
    comment = {
        "postId": post_id,
        "id": comment_id,
        "name": "id labore ex et quam laborum",
        "email": "Eliseo@gardner.biz",
        "body": "laudantium enim quasi",
    }
    comment.update(overrides)
    return comment
