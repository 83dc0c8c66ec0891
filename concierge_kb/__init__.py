"""
Concierge KB - Property Knowledge Index & Visitor Answering

Indexes a rental property's description, amenities, rules, recommendations
and prior answers, then answers visitor questions from FAQs or generated
answers grounded in that content.

Example:
    >>> from concierge_kb import PropertyConcierge
    >>> concierge = PropertyConcierge("./kb.duckdb")
    >>> await concierge.index_property("villa-rosa", {"description": "..."})
    >>> answer = await concierge.answer_question("villa-rosa", "Is there parking?")
    >>> print(answer.answer)

Main Classes:
    PropertyConcierge: Primary entry point for all operations
    ConciergeConfig: Configuration management
"""

__version__ = "0.1.0"

# Public API - lazy imports to avoid loading provider dependencies
def __getattr__(name: str):
    """Lazy import public API components."""

    if name == "PropertyConcierge":
        from concierge_kb.api.concierge import PropertyConcierge
        return PropertyConcierge

    if name == "ConciergeConfig":
        from concierge_kb.config.settings import ConciergeConfig
        return ConciergeConfig

    # Types
    if name in (
        "PropertyData",
        "FaqEntry",
        "Document",
        "VisitorAnswer",
        "AnsweredBy",
        "IndexResult",
        "SuggestedFaq",
    ):
        from concierge_kb import types
        return getattr(types, name)

    raise AttributeError(f"module 'concierge_kb' has no attribute {name!r}")


__all__ = [
    # Main classes
    "PropertyConcierge",
    "ConciergeConfig",

    # Types
    "PropertyData",
    "FaqEntry",
    "Document",
    "VisitorAnswer",
    "AnsweredBy",
    "IndexResult",
    "SuggestedFaq",

    # Version
    "__version__",
]
