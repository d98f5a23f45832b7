"""Static descriptions of the supported upstream calls."""

from dataclasses import dataclass, field
from typing import Any

from pydantic import TypeAdapter

from services.posts_service.src.models import Comment, Post

POST_LIST = TypeAdapter(list[Post])
SINGLE_POST = TypeAdapter(Post)
COMMENT_LIST = TypeAdapter(list[Comment])


@dataclass(frozen=True)
class Operation:
    """One read call against the upstream provider."""

    name: str
    path: str
    response: TypeAdapter[Any] = field(repr=False, compare=False)
    resource: str
    params: dict[str, str] = field(default_factory=dict)
    requires_body: bool = False  # An empty body means the resource does not exist
    method: str = "GET"


class OperationCatalog:
    """Builds operations against the configured posts and comments paths."""

    def __init__(self, posts_path: str = "/posts", comments_path: str = "/comments") -> None:
        """Initialize the catalog.

        Args:
            posts_path: Path of the posts collection, relative to the base URL
            comments_path: Path segment of a post's comments, appended to the post path
        """
        self.posts_path = "/" + posts_path.strip("/")
        self.comments_path = "/" + comments_path.strip("/")

    def list_posts(self, params: dict[str, str]) -> Operation:
        return Operation(
            name="list_posts",
            path=self.posts_path,
            params=dict(params),
            response=POST_LIST,
            resource="posts",
        )

    def post_by_id(self, post_id: int) -> Operation:
        return Operation(
            name="get_post",
            path=f"{self.posts_path}/{post_id}",
            response=SINGLE_POST,
            resource=f"Post with id {post_id}",
            requires_body=True,
        )

    def post_with_comments(self, post_id: int) -> Operation:
        return Operation(
            name="get_post_with_comments",
            path=f"{self.posts_path}/{post_id}",
            params={"_embed": "comments"},
            response=SINGLE_POST,
            resource=f"Post with id {post_id}",
            requires_body=True,
        )

    def comments_for_post(self, post_id: int) -> Operation:
        return Operation(
            name="get_comments",
            path=f"{self.posts_path}/{post_id}{self.comments_path}",
            response=COMMENT_LIST,
            resource=f"comments for post with id {post_id}",
        )
