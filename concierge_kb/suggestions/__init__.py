"""
FAQ Suggestions

Modules:
    collector: Cluster unresolved questions into FAQ candidates
"""

from concierge_kb.suggestions.collector import FaqSuggestionCollector, relevance_for

__all__ = ["FaqSuggestionCollector", "relevance_for"]
