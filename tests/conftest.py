"""Shared fixtures: in-memory store, stub providers and a fast config."""

import pytest

from concierge_kb.config import ConciergeConfig
from concierge_kb.storage.memory import MemoryKnowledgeStore
from support import DIMS, StubEmbeddings, StubLLM


@pytest.fixture
def config() -> ConciergeConfig:
    return ConciergeConfig(
        storage_backend="memory",
        retry_backoff_base_seconds=0.0,
        retry_backoff_ceiling_seconds=0.0,
        answer_deadline_seconds=5.0,
    )


@pytest.fixture
def store() -> MemoryKnowledgeStore:
    return MemoryKnowledgeStore(DIMS)


@pytest.fixture
def embeddings() -> StubEmbeddings:
    return StubEmbeddings()


@pytest.fixture
def llm() -> StubLLM:
    return StubLLM()
