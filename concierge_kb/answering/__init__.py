"""
Answering

Modules:
    matcher: FAQ matching (hit / suggestion / miss)
    composer: Retrieval-augmented answer generation
"""

from concierge_kb.answering.composer import NO_INFORMATION_MESSAGE, AnswerComposer
from concierge_kb.answering.matcher import FaqMatcher

__all__ = ["AnswerComposer", "FaqMatcher", "NO_INFORMATION_MESSAGE"]
