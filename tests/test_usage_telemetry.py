"""Tests for request-scoped usage telemetry aggregation."""

from concierge_kb.config.pricing import PRICING_VERSION, estimate_cost_usd
from concierge_kb.types.results import AnsweredBy, UsageRecord
from concierge_kb.utils.usage_telemetry import (
    UsageCollector,
    current_stage,
    record_usage,
    usage_collector,
    usage_stage,
)


def _record(
    stage: str,
    cost: float,
    tokens: int = 100,
    *,
    model: str = "gpt-4o-mini",
    operation: str = "generate",
    priced: bool = True,
) -> UsageRecord:
    return UsageRecord(
        model=model,
        operation=operation,
        stage=stage,
        input_tokens=tokens,
        output_tokens=0,
        total_tokens=tokens,
        estimated_cost_usd=cost,
        latency_ms=5,
        priced=priced,
    )


def test_collector_aggregates_by_stage() -> None:
    """Stages are reported in pipeline order with their own totals."""
    collector = UsageCollector()
    collector.add(_record("generation", 0.002, tokens=300))
    collector.add(_record("faq_match", 0.0001, tokens=10, operation="embed"))
    collector.add(_record("generation", 0.001, tokens=200))

    report = collector.summary()
    assert report.pricing_version == PRICING_VERSION
    assert report.total_calls == 3
    assert report.total_tokens == 510
    assert [s.stage for s in report.by_stage] == ["faq_match", "generation"]
    generation = report.by_stage[1]
    assert generation.calls == 2
    assert generation.input_tokens == 500
    assert generation.latency_ms == 10
    assert report.warnings == []


def test_unknown_stage_sorts_after_pipeline() -> None:
    collector = UsageCollector()
    collector.add(_record("adhoc", 0.0))
    collector.add(_record("speech", 0.0))
    collector.add(_record("indexing", 0.0, operation="embed"))

    assert [s.stage for s in collector.summary().by_stage] == ["indexing", "speech", "adhoc"]


def test_embedding_and_generation_split() -> None:
    collector = UsageCollector()
    collector.add(_record("faq_match", 0.0, tokens=12, operation="embed"))
    collector.add(_record("generation", 0.0, tokens=150))
    collector.add(_record("url_import", 0.0, tokens=40, operation="generate_json"))

    report = collector.summary()
    assert report.embedding_tokens == 12
    assert report.generation_tokens == 190


def test_summary_carries_answered_by() -> None:
    collector = UsageCollector()
    collector.add(_record("generation", 0.001))

    assert collector.summary().answered_by is None
    assert collector.summary(answered_by=AnsweredBy.GENERATED).answered_by == AnsweredBy.GENERATED


def test_collector_warns_on_threshold() -> None:
    """Collector should include warning when threshold is exceeded."""
    collector = UsageCollector(warn_threshold_usd=0.0005)
    collector.add(_record("generation", 0.001))

    report = collector.summary()
    assert report.warnings
    assert "exceeded threshold" in report.warnings[0]


def test_unpriced_models_warn_once() -> None:
    collector = UsageCollector()
    collector.add(_record("generation", 0.0, model="local-llm", priced=False))
    collector.add(_record("generation", 0.0, model="local-llm", priced=False))
    collector.add(_record("generation", 0.001))

    report = collector.summary()
    assert report.unpriced_models == ["local-llm"]
    assert len(report.warnings) == 1
    assert "local-llm" in report.warnings[0]


def test_record_usage_requires_active_collector() -> None:
    collector = UsageCollector()
    record_usage(_record("generation", 0.001))
    assert collector.records == []

    with usage_collector(collector):
        record_usage(_record("generation", 0.001))
    record_usage(_record("generation", 0.001))

    assert len(collector.records) == 1


def test_usage_stage_nests_and_resets() -> None:
    assert current_stage() == "unknown"
    with usage_stage("generation"):
        with usage_stage("retrieval"):
            assert current_stage() == "retrieval"
        assert current_stage() == "generation"
    assert current_stage() == "unknown"


def test_rate_estimates() -> None:
    assert estimate_cost_usd("gpt-4o-mini", 1_000_000) == 0.15
    assert estimate_cost_usd("gpt-4o-mini", 0, 1_000_000) == 0.60
    assert estimate_cost_usd("text-embedding-3-small", 1_000_000, 500) == 0.02
    assert estimate_cost_usd("unknown-model", 1000) is None
