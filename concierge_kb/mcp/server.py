"""
Concierge MCP Server

Tool handlers are plain async functions returning formatted text, so they
can be exercised without an MCP transport. A single PropertyConcierge is
shared by every tool call.
"""

from __future__ import annotations

import argparse
import json
import logging
from datetime import timedelta
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from mcp.server.fastmcp import FastMCP

from concierge_kb.errors import ConciergeError

# Load .env file for API keys
load_dotenv()

logger = logging.getLogger(__name__)

_concierge_instance: Any = None


async def get_concierge() -> Any:
    """Get the PropertyConcierge instance."""
    if _concierge_instance is None:
        raise RuntimeError("PropertyConcierge not initialized. Call init_concierge() first.")
    return _concierge_instance


async def init_concierge(db_path: str | Path, config_path: str | Path | None = None) -> None:
    """Initialize the PropertyConcierge instance."""
    global _concierge_instance
    from concierge_kb.api.concierge import PropertyConcierge
    from concierge_kb.config import ConciergeConfig

    config = ConciergeConfig.from_file(config_path) if config_path else ConciergeConfig()
    _concierge_instance = PropertyConcierge(db_path, config)
    await _concierge_instance._ensure_initialized()


# =============================================================================
# Tool Handlers
# =============================================================================

async def tool_answer_question(
    property_id: str,
    question: str,
    session_id: str | None = None,
) -> str:
    concierge = await get_concierge()
    try:
        answer = await concierge.answer_question(property_id, question, session_id or None)
    except ConciergeError as e:
        return f"Error: {e}"

    lines = [answer.answer, "", f"answered_by: {answer.answered_by.value}"]
    if answer.match_score is not None:
        lines.append(f"faq_score: {answer.match_score:.2f}")
    if answer.suggested_faq_answer:
        lines.append(f"related_faq: {answer.suggested_faq_answer}")
    if answer.source_document_ids:
        lines.append(f"sources: {', '.join(answer.source_document_ids)}")
    return "\n".join(lines)


async def tool_index_property(property_id: str, data_json: str) -> str:
    concierge = await get_concierge()
    try:
        raw = json.loads(data_json)
    except json.JSONDecodeError as e:
        return f"Error: data_json is not valid JSON ({e})"
    if not isinstance(raw, dict):
        return "Error: data_json must be a JSON object"

    try:
        result = await concierge.index_property(property_id, raw)
    except ConciergeError as e:
        return f"Error: {e}"

    return (
        f"Indexed {result.property_id}: {result.indexed_chunks} chunks "
        f"({result.added} added, {result.removed} removed, {result.unchanged} unchanged) "
        f"in {result.duration_seconds:.1f}s"
    )


async def tool_review_suggestions(property_id: str, days: int = 30) -> str:
    from concierge_kb.types import utc_now

    concierge = await get_concierge()
    end = utc_now()
    try:
        candidates = await concierge.review_suggestions(
            property_id, end - timedelta(days=days), end
        )
    except ConciergeError as e:
        return f"Error: {e}"

    if not candidates:
        return f"No recurring unanswered questions for {property_id} in the last {days} days."

    lines = [f"FAQ suggestions for {property_id} (last {days} days):", ""]
    for i, candidate in enumerate(candidates, 1):
        lines.append(
            f"{i}. {candidate.representative_question} "
            f"[{candidate.relevance}, {candidate.occurrence_count} asks]"
        )
        if candidate.type == "edit":
            lines.append(f"     {candidate.reason} (FAQ {candidate.faq_id})")
        for sample in candidate.sample_questions:
            if sample != candidate.representative_question:
                lines.append(f"     - {sample}")
    return "\n".join(lines)


async def tool_list_faqs(property_id: str) -> str:
    concierge = await get_concierge()
    try:
        entries = await concierge.list_faqs(property_id)
    except ConciergeError as e:
        return f"Error: {e}"

    if not entries:
        return f"No FAQs for {property_id}."
    return "\n".join(
        f"- Q: {entry.question}\n  A: {entry.answer}\n  hits: {entry.hit_count}"
        for entry in entries
    )


async def tool_add_faq(property_id: str, question: str, answer: str) -> str:
    concierge = await get_concierge()
    try:
        entry = await concierge.add_faq(property_id, question, answer)
    except ConciergeError as e:
        return f"Error: {e}"
    return f"Added FAQ {entry.uuid}"


async def tool_kb_stats(property_id: str) -> str:
    concierge = await get_concierge()
    try:
        stats = await concierge.stats(property_id)
    except ConciergeError as e:
        return f"Error: {e}"
    return "\n".join(f"{key}: {value}" for key, value in stats.items())


# =============================================================================
# MCP Server
# =============================================================================

def create_server(name: str = "concierge-kb") -> FastMCP:
    """Create the MCP server with the concierge tools."""
    mcp = FastMCP(name)

    @mcp.tool()
    async def answer_question(property_id: str, question: str, session_id: str = "") -> str:
        """
        Answer a visitor question about a property.

        Confident FAQ matches return the stored answer; otherwise the answer
        is generated from the property's indexed description, amenities,
        rules and recommendations.

        Args:
            property_id: Property the visitor is viewing
            question: The visitor's question
            session_id: Optional chat session id

        Returns:
            The answer followed by how it was produced
        """
        return await tool_answer_question(property_id, question, session_id)

    @mcp.tool()
    async def index_property(property_id: str, data_json: str) -> str:
        """
        Index (or re-index) a property's content.

        Args:
            property_id: Property to index
            data_json: JSON object with name, description, amenities, rules,
                prior_answers and recommendations

        Returns:
            Added/removed/unchanged chunk counts
        """
        return await tool_index_property(property_id, data_json)

    @mcp.tool()
    async def review_suggestions(property_id: str, days: int = 30) -> str:
        """
        Recurring unanswered visitor questions proposed as new FAQs.

        Args:
            property_id: Property to review
            days: Review window ending now

        Returns:
            Ranked suggestions with relevance and sample phrasings
        """
        return await tool_review_suggestions(property_id, days)

    @mcp.tool()
    async def list_faqs(property_id: str) -> str:
        """List a property's FAQs with hit counts."""
        return await tool_list_faqs(property_id)

    @mcp.tool()
    async def add_faq(property_id: str, question: str, answer: str) -> str:
        """Add an FAQ entry for a property."""
        return await tool_add_faq(property_id, question, answer)

    @mcp.tool()
    async def kb_stats(property_id: str) -> str:
        """Document, FAQ and unresolved-question counts for a property."""
        return await tool_kb_stats(property_id)

    return mcp


async def run_server(db_path: str | Path, config_path: str | Path | None = None) -> None:
    """Initialize the concierge and run the MCP server."""
    await init_concierge(db_path, config_path)
    mcp = create_server()
    try:
        await mcp.run_stdio_async()
    finally:
        await _concierge_instance.close()


# =============================================================================
# CLI Entry Point
# =============================================================================

def main() -> None:
    """CLI entry point for the MCP server."""
    import asyncio

    parser = argparse.ArgumentParser(
        description="Concierge KB MCP Server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Example:
    python -m concierge_kb.mcp --db ./kb.duckdb
""",
    )
    parser.add_argument(
        "--db", "-d",
        type=Path,
        default=Path("./concierge.duckdb"),
        help="Knowledge store file",
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        default=None,
        help="TOML configuration file",
    )

    args = parser.parse_args()

    # stdout carries the MCP protocol
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    asyncio.run(run_server(args.db, args.config))


if __name__ == "__main__":
    main()
