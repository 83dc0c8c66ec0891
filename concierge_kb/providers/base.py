"""
Abstract Provider Interfaces

Base classes for LLM, embedding and text-to-speech providers.

Implementations translate backend errors into the concierge error taxonomy:
    - EmbeddingProvider -> EmbeddingUnavailable
    - LLMProvider -> GenerationUnavailable / RateLimited
    - SpeechProvider -> GenerationUnavailable
"""

from abc import ABC, abstractmethod
from typing import TypeVar

from pydantic import BaseModel

T = TypeVar("T", bound=BaseModel)


class LLMProvider(ABC):
    """Abstract interface for LLM providers."""

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        *,
        system: str | None = None,
        temperature: float = 0.0,
        max_tokens: int = 512,
    ) -> str:
        """Generate a completion."""
        ...

    @abstractmethod
    async def generate_structured(
        self,
        prompt: str,
        schema: type[T],
        *,
        system: str | None = None,
    ) -> T:
        """Generate a structured response matching the schema."""
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Current model name."""
        ...


class EmbeddingProvider(ABC):
    """Abstract interface for embedding providers."""

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for texts."""
        ...

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate embedding for a single text."""
        ...

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Embedding dimensions."""
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Current model name."""
        ...


class SpeechProvider(ABC):
    """Abstract interface for text-to-speech providers."""

    @abstractmethod
    async def synthesize(self, text: str, *, language_code: str = "en-US") -> bytes:
        """Synthesize speech for text, returning WAV audio bytes."""
        ...

    @abstractmethod
    def voice_for(self, language_code: str) -> str:
        """Voice used for a BCP-47 language code."""
        ...
