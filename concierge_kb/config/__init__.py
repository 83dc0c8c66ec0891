"""
Configuration System

Manages configuration for the concierge pipeline with a layered approach.

Configuration Priority (highest to lowest):
    1. Programmatic (passed to ConciergeConfig())
    2. Environment variables (CONCIERGE_* prefix)
    3. Config file (ConciergeConfig.from_file)
    4. Built-in defaults

Modules:
    settings: ConciergeConfig class
    providers: Provider-specific defaults and voice mapping
    pricing: Model pricing for usage telemetry
"""

from concierge_kb.config.settings import ConciergeConfig

__all__ = ["ConciergeConfig"]
