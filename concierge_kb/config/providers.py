"""
Provider Configurations

Default model configurations for each LLM/embedding provider, and the
text-to-speech voice chosen for each visitor language.
"""

# Provider default models
PROVIDER_DEFAULTS = {
    "openai": {
        "llm_model": "gpt-4o-mini",
    },
}

# Embedding provider defaults
EMBEDDING_DEFAULTS = {
    "openai": {
        "embedding_model": "text-embedding-3-small",
        "embedding_dimensions": 1536,
    },
    "hash": {
        "embedding_model": "sha256-pcg64",
        "embedding_dimensions": 256,
    },
}

# BCP-47 language code -> text-to-speech voice
VOICE_MAP = {
    "en-US": "alloy",
    "es-ES": "nova",
    "fr-FR": "shimmer",
    "de-DE": "onyx",
    "it-IT": "fable",
}
