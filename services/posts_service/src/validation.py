"""Cross-field validation of post search criteria."""

from dataclasses import dataclass

from services.posts_service.src.exceptions import DomainError
from services.posts_service.src.models import MAX_PAGE_SIZE, SORT_ORDERS, SORTABLE_FIELDS, SearchCriteria

PAGE_SIZE_PAIRING_MESSAGE = "Both page and size must be provided together"
ORDER_REQUIRES_SORT_MESSAGE = "Sort field is required when order is specified"


@dataclass(frozen=True)
class Violation:
    """One rejected field and why."""

    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


def _user_id_violations(criteria: SearchCriteria) -> list[Violation]:
    if criteria.user_id is not None and criteria.user_id < 1:
        return [Violation("userId", "User id must be a positive integer")]
    return []


def _pagination_violations(criteria: SearchCriteria) -> list[Violation]:
    page_provided = criteria.page is not None
    size_provided = criteria.size is not None
    if page_provided != size_provided:
        return [Violation("size" if page_provided else "page", PAGE_SIZE_PAIRING_MESSAGE)]

    violations = []
    if criteria.page is not None and criteria.page < 1:
        violations.append(Violation("page", "Page number must be at least 1"))
    if criteria.size is not None and not 1 <= criteria.size <= MAX_PAGE_SIZE:
        violations.append(Violation("size", f"Page size must be between 1 and {MAX_PAGE_SIZE}"))
    return violations


def _sort_violations(criteria: SearchCriteria) -> list[Violation]:
    violations = []
    if criteria.sort is not None and criteria.sort not in SORTABLE_FIELDS:
        violations.append(Violation("sort", f"Sort field must be one of: {', '.join(SORTABLE_FIELDS)}"))
    if criteria.order is not None:
        # An order without a sort field is reported once, whatever its value
        if criteria.sort is None:
            violations.append(Violation("sort", ORDER_REQUIRES_SORT_MESSAGE))
        elif criteria.order.lower() not in SORT_ORDERS:
            violations.append(Violation("order", "Order must be 'asc' or 'desc'"))
    return violations


def validate_search_criteria(criteria: SearchCriteria) -> list[Violation]:
    """Check every rule and collect all violations.

    Args:
        criteria: Criteria to check

    Returns:
        Violations in rule order; empty when the criteria is accepted
    """
    return [
        *_user_id_violations(criteria),
        *_pagination_violations(criteria),
        *_sort_violations(criteria),
    ]


def format_violations(violations: list[Violation]) -> str:
    return "; ".join(str(violation) for violation in violations)


def ensure_valid(criteria: SearchCriteria) -> SearchCriteria:
    """Return the criteria unchanged or raise a 400 DomainError listing every violation."""
    violations = validate_search_criteria(criteria)
    if violations:
        raise DomainError.validation(format_violations(violations))
    return criteria
