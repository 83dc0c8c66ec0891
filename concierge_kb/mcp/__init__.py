"""
Concierge MCP Server

Exposes visitor answering, indexing and suggestion review as MCP tools.

Tools:
    - answer_question: Answer a visitor question for a property
    - index_property: Index (or re-index) property content from JSON
    - review_suggestions: Recurring unanswered questions proposed as FAQs
    - list_faqs: A property's FAQs with hit counts
    - add_faq: Add an FAQ entry
    - kb_stats: Document, FAQ and unresolved-question counts

Usage:
    # Run the MCP server
    python -m concierge_kb.mcp --db ./kb.duckdb

    # Or in Claude Desktop config:
    {
        "mcpServers": {
            "concierge-kb": {
                "command": "python",
                "args": ["-m", "concierge_kb.mcp", "--db", "./kb.duckdb"]
            }
        }
    }
"""

from concierge_kb.mcp.server import create_server, run_server

__all__ = ["create_server", "run_server"]
