"""
Usage Telemetry

Token and cost accounting for one concierge request.

A request opts in by activating a UsageCollector (usage_collector); the
pipeline labels its phases with usage_stage and the OpenAI providers report
each call through record_usage. Outside an active collector nothing is kept.

Example:
    >>> collector = UsageCollector(warn_threshold_usd=0.01)
    >>> with usage_collector(collector):
    ...     with usage_stage("generation"):
    ...         await llm.generate(prompt)
    >>> report = collector.summary(answered_by=AnsweredBy.GENERATED)
"""

from __future__ import annotations

from collections import defaultdict
from contextlib import contextmanager
from contextvars import ContextVar

from concierge_kb.config.pricing import PRICING_VERSION
from concierge_kb.types.results import AnsweredBy, StageUsage, UsageRecord, UsageReport

# Order stages appear in a report; unlisted stages follow alphabetically
PIPELINE_STAGES = (
    "indexing",
    "faq_match",
    "retrieval",
    "generation",
    "suggestion_drafts",
    "faq_admin",
    "url_import",
    "speech",
)

_active_collector: ContextVar[UsageCollector | None] = ContextVar(
    "concierge_usage_collector", default=None
)
_active_stage: ContextVar[str] = ContextVar("concierge_usage_stage", default="unknown")


def _stage_key(stage: str) -> tuple[int, str]:
    if stage in PIPELINE_STAGES:
        return PIPELINE_STAGES.index(stage), ""
    return len(PIPELINE_STAGES), stage


class UsageCollector:
    """Collects the provider calls made while answering one request."""

    def __init__(self, *, warn_threshold_usd: float | None = None) -> None:
        self._records: list[UsageRecord] = []
        self._warn_threshold_usd = warn_threshold_usd

    @property
    def records(self) -> list[UsageRecord]:
        return list(self._records)

    def add(self, record: UsageRecord) -> None:
        self._records.append(record)

    def summary(self, *, answered_by: AnsweredBy | None = None) -> UsageReport:
        """Report the collected calls grouped by pipeline stage."""
        stages: dict[str, list[UsageRecord]] = defaultdict(list)
        for record in self._records:
            stages[record.stage].append(record)

        by_stage = [
            StageUsage(
                stage=name,
                calls=len(calls),
                input_tokens=sum(r.input_tokens for r in calls),
                output_tokens=sum(r.output_tokens for r in calls),
                estimated_cost_usd=sum(r.estimated_cost_usd for r in calls),
                latency_ms=sum(r.latency_ms for r in calls),
            )
            for name, calls in sorted(stages.items(), key=lambda item: _stage_key(item[0]))
        ]

        total_cost = sum(r.estimated_cost_usd for r in self._records)
        unpriced = sorted({r.model for r in self._records if not r.priced})

        warnings: list[str] = []
        if unpriced:
            warnings.append(
                f"No rate for {', '.join(unpriced)}; those calls are counted at $0."
            )
        if self._warn_threshold_usd is not None and total_cost >= self._warn_threshold_usd:
            warnings.append(
                f"Estimated cost ${total_cost:.6f} exceeded threshold "
                f"${self._warn_threshold_usd:.6f}."
            )

        return UsageReport(
            pricing_version=PRICING_VERSION,
            answered_by=answered_by,
            total_calls=len(self._records),
            total_tokens=sum(r.total_tokens for r in self._records),
            total_estimated_cost_usd=total_cost,
            embedding_tokens=sum(r.total_tokens for r in self._records if r.operation == "embed"),
            generation_tokens=sum(
                r.total_tokens for r in self._records if r.operation.startswith("generate")
            ),
            by_stage=by_stage,
            unpriced_models=unpriced,
            warnings=warnings,
        )


@contextmanager
def usage_collector(collector: UsageCollector | None):
    """Route provider usage records to collector for the duration of the block."""
    token = _active_collector.set(collector)
    try:
        yield collector
    finally:
        _active_collector.reset(token)


@contextmanager
def usage_stage(stage: str):
    """Label provider calls made inside the block with a pipeline stage."""
    token = _active_stage.set(stage)
    try:
        yield
    finally:
        _active_stage.reset(token)


def current_stage() -> str:
    return _active_stage.get()


def record_usage(record: UsageRecord) -> None:
    """Hand record to the active collector; dropped when none is active."""
    if (collector := _active_collector.get()) is not None:
        collector.add(record)
