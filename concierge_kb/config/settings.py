"""
ConciergeConfig - Configuration Management

Sensible defaults with full override capability.

Example:
    >>> # Use defaults (reads from environment)
    >>> concierge = PropertyConcierge("./kb.duckdb")

    >>> # Explicit configuration
    >>> config = ConciergeConfig(
    ...     high_confidence=0.9,
    ...     retrieval_top_k=8,
    ... )
    >>> concierge = PropertyConcierge("./kb.duckdb", config=config)

    >>> # From config file
    >>> config = ConciergeConfig.from_file("./concierge.toml")

Environment Variables:
    CONCIERGE_LLM_PROVIDER - LLM provider name
    CONCIERGE_LLM_MODEL - Model for answer generation
    CONCIERGE_EMBEDDING_PROVIDER - Embedding provider name ("openai", "hash")
    CONCIERGE_EMBEDDING_MODEL - Embedding model name
    CONCIERGE_HIGH_CONFIDENCE - FAQ hit threshold
    CONCIERGE_LOW_CONFIDENCE - FAQ suggestion threshold
    CONCIERGE_ANSWER_DEADLINE_SECONDS - Overall visitor answering deadline
    OPENAI_API_KEY - OpenAI API key (standard name)
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, cast


def _load_toml(path: Path) -> dict[str, Any]:
    with open(path, "rb") as f:
        return cast(dict[str, Any], tomllib.load(f))


class ConciergeConfig:
    """Configuration for the property concierge knowledge pipeline."""

    # === LLM Configuration ===

    llm_provider: str = "openai"
    """LLM provider: "openai" """

    llm_model: str = "gpt-4o-mini"
    """Model for grounded answer generation and URL extraction"""

    llm_temperature: float = 0.0
    """Sampling temperature for answer generation"""

    llm_max_tokens: int = 512
    """Maximum tokens in a generated visitor answer"""

    # === Embedding Configuration ===

    embedding_provider: str = "openai"
    """Embedding provider: "openai", "hash" (deterministic, offline) """

    embedding_model: str = "text-embedding-3-small"
    """Embedding model name"""

    embedding_dimensions: int = 1536
    """Embedding vector dimensions (fixed per knowledge store)"""

    embedding_batch_size: int = 100
    """Texts per embedding API call"""

    # === Speech Configuration ===

    speech_model: str = "gpt-4o-mini-tts"
    """Text-to-speech model"""

    speech_default_voice: str = "alloy"
    """Voice used when the language code has no mapped voice"""

    speech_max_chars: int = 1200
    """Longest text sent to the speech backend"""

    # === API Keys ===

    openai_api_key: str | None = None

    # === Matching Configuration ===

    high_confidence: float = 0.85
    """FAQ similarity at or above which the stored answer is returned directly"""

    low_confidence: float = 0.70
    """FAQ similarity at or above which the FAQ is offered as a suggestion"""

    faq_top_k: int = 3
    """FAQ candidates considered per question"""

    # === Retrieval Configuration ===

    retrieval_top_k: int = 5
    """Documents retrieved as context for generated answers"""

    retrieval_min_score: float = 0.3
    """Minimum document similarity to be used as context"""

    question_max_chars: int = 2000
    """Longer visitor questions are cut to this many characters"""

    context_token_budget: int = 1500
    """Maximum tokens of assembled property context"""

    # === Indexing Configuration ===

    chunk_max_tokens: int = 200
    """Token budget for a single indexed chunk"""

    # === Suggestion Configuration ===

    cluster_threshold: float = 0.90
    """Pairwise similarity above which unresolved questions are clustered"""

    min_cluster_occurrences: int = 2
    """Clusters with fewer occurrences are not suggested"""

    unresolved_retention_days: int = 30
    """Unresolved questions older than this are purged"""

    # === Timeouts & Retry ===

    embedding_timeout_seconds: float = 10.0
    storage_timeout_seconds: float = 5.0
    generation_timeout_seconds: float = 20.0
    fetch_timeout_seconds: float = 15.0

    answer_deadline_seconds: float = 30.0
    """Overall deadline for answering one visitor question"""

    generation_max_retries: int = 1
    """Retries after the first failed generation attempt"""

    retry_backoff_base_seconds: float = 0.5
    retry_backoff_ceiling_seconds: float = 4.0

    # === Cost Telemetry Configuration ===

    usage_warn_threshold_usd: float | None = None
    """Optional warning threshold for per-request estimated cost"""

    # === Storage Configuration ===

    storage_backend: str = "duckdb"
    """Knowledge store backend: "duckdb", "memory" """

    def __init__(self, **kwargs: Any) -> None:
        """
        Initialize configuration.

        Args:
            **kwargs: Override any configuration option
        """
        self._load_from_env()

        for key, value in kwargs.items():
            if hasattr(self, key) and not key.startswith("_"):
                setattr(self, key, value)
            else:
                raise ValueError(f"Unknown configuration option: {key}")

        if self.low_confidence > self.high_confidence:
            raise ValueError(
                f"low_confidence ({self.low_confidence}) must not exceed "
                f"high_confidence ({self.high_confidence})"
            )

    def _load_from_env(self) -> None:
        """Load configuration from environment variables."""
        self.openai_api_key = os.getenv("OPENAI_API_KEY")

        if provider := os.getenv("CONCIERGE_LLM_PROVIDER"):
            self.llm_provider = provider
        if model := os.getenv("CONCIERGE_LLM_MODEL"):
            self.llm_model = model
        if provider := os.getenv("CONCIERGE_EMBEDDING_PROVIDER"):
            self.embedding_provider = provider
        if model := os.getenv("CONCIERGE_EMBEDDING_MODEL"):
            self.embedding_model = model
        if threshold := os.getenv("CONCIERGE_HIGH_CONFIDENCE"):
            self.high_confidence = float(threshold)
        if threshold := os.getenv("CONCIERGE_LOW_CONFIDENCE"):
            self.low_confidence = float(threshold)
        if deadline := os.getenv("CONCIERGE_ANSWER_DEADLINE_SECONDS"):
            self.answer_deadline_seconds = float(deadline)
        if threshold := os.getenv("CONCIERGE_USAGE_WARN_THRESHOLD_USD"):
            self.usage_warn_threshold_usd = float(threshold)

    # Section name -> config key prefix
    _SECTION_MAPPING = {
        "llm": "llm_",
        "embedding": "embedding_",
        "speech": "speech_",
        "api_keys": "",
        "matching": "",
        "retrieval": "",
        "indexing": "",
        "suggestions": "",
        "timeouts": "",
        "storage": "",
        "usage": "usage_",
    }

    @classmethod
    def from_file(cls, path: str | Path) -> "ConciergeConfig":
        """
        Load configuration from TOML file.

        Nested sections are flattened; `[llm] model = ...` becomes `llm_model`.

        Example TOML:
            [llm]
            model = "gpt-4o-mini"

            [matching]
            high_confidence = 0.9
            low_confidence = 0.75

            [api_keys]
            openai = "sk-..."

        Raises:
            FileNotFoundError: If config file doesn't exist
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        data = _load_toml(path)
        flat_config: dict[str, Any] = {}

        for section, prefix in cls._SECTION_MAPPING.items():
            if section in data:
                for key, value in data[section].items():
                    if section == "api_keys":
                        flat_config[f"{key}_api_key"] = value
                    else:
                        flat_config[f"{prefix}{key}"] = value

        for key, value in data.items():
            if key not in cls._SECTION_MAPPING and not isinstance(value, dict):
                flat_config[key] = value

        return cls(**flat_config)

    @classmethod
    def from_env(cls) -> "ConciergeConfig":
        """Load configuration from environment variables only."""
        return cls()

    def to_file(self, path: str | Path) -> None:
        """
        Save configuration to TOML file.

        API keys are excluded; set them via environment variables.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        sections: dict[str, dict[str, str | int | float | bool | None]] = {
            "llm": {
                "provider": self.llm_provider,
                "model": self.llm_model,
                "temperature": self.llm_temperature,
                "max_tokens": self.llm_max_tokens,
            },
            "embedding": {
                "provider": self.embedding_provider,
                "model": self.embedding_model,
                "dimensions": self.embedding_dimensions,
                "batch_size": self.embedding_batch_size,
            },
            "speech": {
                "model": self.speech_model,
                "default_voice": self.speech_default_voice,
                "max_chars": self.speech_max_chars,
            },
            "matching": {
                "high_confidence": self.high_confidence,
                "low_confidence": self.low_confidence,
                "faq_top_k": self.faq_top_k,
            },
            "retrieval": {
                "retrieval_top_k": self.retrieval_top_k,
                "retrieval_min_score": self.retrieval_min_score,
                "context_token_budget": self.context_token_budget,
                "question_max_chars": self.question_max_chars,
            },
            "indexing": {
                "chunk_max_tokens": self.chunk_max_tokens,
            },
            "suggestions": {
                "cluster_threshold": self.cluster_threshold,
                "min_cluster_occurrences": self.min_cluster_occurrences,
                "unresolved_retention_days": self.unresolved_retention_days,
            },
            "timeouts": {
                "embedding_timeout_seconds": self.embedding_timeout_seconds,
                "storage_timeout_seconds": self.storage_timeout_seconds,
                "generation_timeout_seconds": self.generation_timeout_seconds,
                "fetch_timeout_seconds": self.fetch_timeout_seconds,
                "answer_deadline_seconds": self.answer_deadline_seconds,
                "generation_max_retries": self.generation_max_retries,
                "retry_backoff_base_seconds": self.retry_backoff_base_seconds,
                "retry_backoff_ceiling_seconds": self.retry_backoff_ceiling_seconds,
            },
            "usage": {
                "warn_threshold_usd": self.usage_warn_threshold_usd,
            },
            "storage": {
                "storage_backend": self.storage_backend,
            },
        }

        lines = ["# Concierge KB Configuration", ""]

        for section_name, section_values in sections.items():
            lines.append(f"[{section_name}]")
            for key, value in section_values.items():
                if isinstance(value, str):
                    lines.append(f'{key} = "{value}"')
                elif isinstance(value, bool):
                    lines.append(f"{key} = {str(value).lower()}")
                elif isinstance(value, (int, float)):
                    lines.append(f"{key} = {value}")
            lines.append("")

        lines.extend([
            "# API keys should be set via environment variables:",
            "# OPENAI_API_KEY",
            "",
        ])

        path.write_text("\n".join(lines))

    def with_overrides(self, **kwargs: Any) -> "ConciergeConfig":
        """Return new config with specified overrides."""
        new_config = ConciergeConfig.__new__(ConciergeConfig)
        for key in dir(self):
            if not key.startswith("_") and not callable(getattr(self, key)):
                setattr(new_config, key, getattr(self, key))
        for key, value in kwargs.items():
            if not hasattr(new_config, key):
                raise ValueError(f"Unknown configuration option: {key}")
            setattr(new_config, key, value)
        return new_config
