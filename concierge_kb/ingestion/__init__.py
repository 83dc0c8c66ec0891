"""
Ingestion

Modules:
    chunking: Property data -> bounded chunks
    indexer: Chunk, diff, embed and store property content
    url_import: Listing page -> ImportedProperty
"""

from concierge_kb.ingestion.chunking import chunk_property_data
from concierge_kb.ingestion.indexer import Indexer
from concierge_kb.ingestion.url_import import PropertyImporter, html_to_text

__all__ = ["chunk_property_data", "Indexer", "PropertyImporter", "html_to_text"]
