"""Translation of search criteria into the upstream query vocabulary."""

from services.posts_service.src.models import SearchCriteria

DEFAULT_ORDER = "asc"


def translate_criteria(criteria: SearchCriteria) -> dict[str, str]:
    """Build upstream query parameters for a validated criteria.

    Parameter order is fixed (userId, title_like, _page, _limit, _sort,
    _order) so equal criteria always produce the same query string.

    Args:
        criteria: Criteria that already passed validation

    Returns:
        Ordered mapping of query parameter name to value
    """
    params: dict[str, str] = {}

    if criteria.user_id is not None:
        params["userId"] = str(criteria.user_id)
    if criteria.title_contains is not None and criteria.title_contains.strip():
        params["title_like"] = criteria.title_contains.strip()
    if criteria.page is not None and criteria.size is not None:
        params["_page"] = str(criteria.page)
        params["_limit"] = str(criteria.size)
    if criteria.sort is not None:
        params["_sort"] = criteria.sort
        params["_order"] = criteria.order.lower() if criteria.order else DEFAULT_ORDER

    return params
