"""
Posts API endpoints for the posts service.

Provides REST endpoints for listing posts, fetching a single post (optionally
with its comments) and listing the comments of a post.
"""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Query, Request

from services.posts_service.src.exceptions import DomainError
from services.posts_service.src.integration.gateway import ResilientGateway
from services.posts_service.src.models import Comment, Post, SearchCriteria

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/posts", tags=["posts"])

PROBLEM_RESPONSES: dict[int | str, dict[str, str]] = {
    400: {"description": "Invalid request parameters"},
    503: {"description": "Upstream service unavailable"},
    429: {"description": "Upstream rate limit exceeded"},
}


def get_gateway(request: Request) -> ResilientGateway:
    """Dependency returning the process-wide gateway built at startup."""
    gateway: ResilientGateway = request.app.state.gateway
    return gateway


def search_criteria(
    user_id: Annotated[int | None, Query(alias="userId", description="Filter by user ID")] = None,
    title_contains: Annotated[
        str | None, Query(alias="titleContains", description="Filter posts containing this text in title")
    ] = None,
    page: Annotated[int | None, Query(description="Page number (1-based), requires size")] = None,
    size: Annotated[int | None, Query(description="Items per page (1-100), requires page")] = None,
    sort: Annotated[str | None, Query(description="Sort field: id, userId or title")] = None,
    order: Annotated[str | None, Query(description="Sort order: asc or desc, requires sort")] = None,
) -> SearchCriteria:
    """Bind query parameters to a SearchCriteria; rules are checked by the gateway."""
    return SearchCriteria(
        user_id=user_id,
        title_contains=title_contains,
        page=page,
        size=size,
        sort=sort,
        order=order,
    )


def require_positive_id(post_id: int, field: str = "id") -> int:
    if post_id < 1:
        raise DomainError.validation(f"{field}: Post id must be a positive integer")
    return post_id


@router.get("", response_model=list[Post], response_model_exclude_none=True, responses=PROBLEM_RESPONSES)
async def list_posts(
    criteria: Annotated[SearchCriteria, Depends(search_criteria)],
    gateway: Annotated[ResilientGateway, Depends(get_gateway)],
) -> list[Post]:
    """Retrieve posts with optional filtering by userId, title search, pagination, and sorting."""
    logger.debug("Getting posts", criteria=criteria.model_dump(exclude_none=True))
    posts = await gateway.list_posts(criteria)
    logger.debug("Returning posts", count=len(posts))
    return posts


@router.get(
    "/{post_id}",
    response_model=Post,
    response_model_exclude_none=True,
    responses={**PROBLEM_RESPONSES, 404: {"description": "Post not found"}},
)
async def get_post(
    post_id: int,
    gateway: Annotated[ResilientGateway, Depends(get_gateway)],
    include: Annotated[
        str | None, Query(description="Related resources to include (supported: 'comments')")
    ] = None,
) -> Post:
    """Retrieve a single post by its ID. Use ?include=comments to embed comments."""
    require_positive_id(post_id)
    include_comments = include is not None and include.strip().lower() == "comments"
    logger.debug("Getting post", post_id=post_id, include_comments=include_comments)
    if include_comments:
        return await gateway.get_post_with_comments(post_id)
    return await gateway.get_post(post_id)


@router.get(
    "/{post_id}/comments",
    response_model=list[Comment],
    response_model_exclude_none=True,
    responses=PROBLEM_RESPONSES,
)
async def get_comments(
    post_id: int,
    gateway: Annotated[ResilientGateway, Depends(get_gateway)],
) -> list[Comment]:
    """Retrieve all comments associated with a specific post."""
    require_positive_id(post_id, field="postId")
    comments = await gateway.get_comments(post_id)
    logger.debug("Returning comments", post_id=post_id, count=len(comments))
    return comments
