"""
Data models for the posts service.

This module provides Pydantic models for upstream payloads and the
post search criteria.
"""

from .post_models import (
    MAX_PAGE_SIZE,
    SORT_ORDERS,
    SORTABLE_FIELDS,
    Comment,
    Post,
    SearchCriteria,
)

__all__ = [
    "MAX_PAGE_SIZE",
    "SORTABLE_FIELDS",
    "SORT_ORDERS",
    "Comment",
    "Post",
    "SearchCriteria",
]
