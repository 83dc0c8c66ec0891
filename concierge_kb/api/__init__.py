"""
Public API

Modules:
    concierge: PropertyConcierge facade
"""

from concierge_kb.api.concierge import PropertyConcierge

__all__ = ["PropertyConcierge"]
