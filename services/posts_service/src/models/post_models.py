"""
Post data models for the upstream posts provider.

Provides Pydantic models for posts, comments and the search criteria used to
filter, paginate and sort the post listing.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

SORTABLE_FIELDS = ("id", "userId", "title")
SORT_ORDERS = ("asc", "desc")
MAX_PAGE_SIZE = 100


class Comment(BaseModel):
    """A comment on a post."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    post_id: int = Field(alias="postId", description="ID of the post this comment belongs to")
    id: int = Field(description="Unique identifier of the comment")
    name: str | None = Field(None, description="Name/title of the comment")
    email: str | None = Field(None, description="Email of the commenter")
    body: str | None = Field(None, description="Body content of the comment")


class Post(BaseModel):
    """A post from the upstream provider."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    user_id: int | None = Field(None, alias="userId", description="ID of the user who created the post")
    id: int = Field(description="Unique identifier of the post")
    title: str | None = Field(None, description="Title of the post")
    body: str | None = Field(None, description="Body content of the post")
    comments: list[Comment] | None = Field(
        None, description="Comments on this post (only included when include=comments)"
    )


class SearchCriteria(BaseModel):
    """Search criteria for filtering, paginating, and sorting posts.

    Construction only normalizes values. Range and cross-field rules are
    checked by ``validate_search_criteria`` so that every violation can be
    reported at once.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    user_id: int | None = Field(None, alias="userId", description="Filter by user ID")
    title_contains: str | None = Field(
        None, alias="titleContains", description="Filter posts containing this text in title"
    )
    page: int | None = Field(None, description="Page number (1-based). Must be used together with 'size'")
    size: int | None = Field(None, description="Number of items per page. Must be used together with 'page'")
    sort: str | None = Field(None, description="Field to sort by (id, userId, title)")
    order: str | None = Field(None, description="Sort order (asc, desc); requires 'sort'")

    @field_validator("title_contains")
    @classmethod
    def strip_title(cls, v: str | None) -> str | None:
        """Trim the title filter and treat blank input as absent."""
        if v is None:
            return None
        cleaned = v.strip()
        return cleaned or None

    @field_validator("sort", "order")
    @classmethod
    def blank_as_absent(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        return v.strip()
