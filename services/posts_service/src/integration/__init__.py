"""
Upstream integration for the posts service.

Operations, outcome classification, query translation and the resilient
gateway that ties them together.
"""

from .failure_classifier import Classification, FailureClass, classify
from .gateway import ResilientGateway, default_fallback
from .operations import Operation, OperationCatalog
from .query_translator import translate_criteria

__all__ = [
    "Classification",
    "FailureClass",
    "Operation",
    "OperationCatalog",
    "ResilientGateway",
    "classify",
    "default_fallback",
    "translate_criteria",
]
