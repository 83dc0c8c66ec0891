"""
Listing URL Importer

Pre-fills property data from a public listing page (Airbnb, VRBO, a personal
site): the page is fetched, reduced to visible text and handed to the LLM for
structured extraction into description, amenities and rules.

Example:
    >>> importer = PropertyImporter(llm)
    >>> imported = await importer.import_from_url("https://example.com/villa")
    >>> data = imported.to_property_data(name="Villa Rosa")
"""

from __future__ import annotations

import html
import logging
import re
from typing import TYPE_CHECKING

import httpx

from concierge_kb.errors import ImportFailed, InvalidInput
from concierge_kb.types import ImportedProperty
from concierge_kb.utils.usage_telemetry import usage_stage

if TYPE_CHECKING:
    from concierge_kb.providers.base import LLMProvider

logger = logging.getLogger(__name__)

_MAX_PAGE_CHARS = 24_000

_DROP_BLOCKS = re.compile(
    r"<(script|style|noscript|svg|template)\b[^>]*>.*?</\1\s*>",
    re.DOTALL | re.IGNORECASE,
)
_BLOCK_TAGS = re.compile(r"</?(p|div|br|li|ul|ol|h[1-6]|section|article|tr)\b[^>]*>", re.IGNORECASE)
_TAGS = re.compile(r"<[^>]+>")
_BLANK_LINES = re.compile(r"\n\s*\n+")
_SPACES = re.compile(r"[ \t\f\v]+")

_EXTRACTION_SYSTEM_PROMPT = """\
You are an expert data extraction agent specializing in vacation rental listings.

From the listing page text you are given:
1. Description: summarize the main property description into an engaging
   paragraph of about 100-150 words.
2. Amenities: list every amenity as a single comma-separated string.
3. House rules: list the house rules as a single period-separated string.

If any of these cannot be found, return an empty string for it.
Do not invent information."""


def html_to_text(page: str) -> str:
    """Reduce an HTML page to its visible text, one block per line."""
    text = _DROP_BLOCKS.sub(" ", page)
    text = _BLOCK_TAGS.sub("\n", text)
    text = _TAGS.sub(" ", text)
    text = html.unescape(text)
    text = _SPACES.sub(" ", text)
    lines = [line.strip() for line in text.splitlines()]
    return _BLANK_LINES.sub("\n\n", "\n".join(lines)).strip()


class PropertyImporter:
    """
    Extracts property details from a listing URL.

    Args:
        llm: Provider used for structured extraction
        timeout: Seconds allowed for fetching the page
    """

    def __init__(self, llm: "LLMProvider", *, timeout: float = 15.0) -> None:
        self.llm = llm
        self.timeout = timeout

    async def fetch_text(self, url: str) -> str:
        """
        Fetch a page and return its visible text.

        Raises:
            InvalidInput: URL is not http(s)
            ImportFailed: Page could not be fetched
        """
        try:
            parsed = httpx.URL(url)
        except (httpx.InvalidURL, TypeError) as e:
            raise InvalidInput(f"Invalid URL: {url}") from e
        if parsed.scheme not in ("http", "https") or not parsed.host:
            raise InvalidInput(f"Only http(s) URLs can be imported: {url}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                response = await client.get(url, headers={"User-Agent": "concierge-kb/0.1"})
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ImportFailed(f"{url} returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise ImportFailed(f"Could not fetch {url}: {e}") from e

        text = html_to_text(response.text)
        logger.debug(f"Fetched {url}: {len(response.text)} bytes, {len(text)} chars of text")
        return text[:_MAX_PAGE_CHARS]

    async def import_from_url(self, url: str) -> ImportedProperty:
        """
        Fetch a listing and extract description, amenities and rules.

        Missing fields come back as empty strings.

        Raises:
            InvalidInput: URL is not http(s)
            ImportFailed: Page could not be fetched
            GenerationUnavailable: Extraction failed
        """
        text = await self.fetch_text(url)
        if not text:
            logger.warning(f"No visible text at {url}")
            return ImportedProperty()

        prompt = f"LISTING URL: {url}\n\nPAGE TEXT:\n{text}"
        with usage_stage("url_import"):
            imported = await self.llm.generate_structured(
                prompt,
                ImportedProperty,
                system=_EXTRACTION_SYSTEM_PROMPT,
            )

        logger.info(
            f"Imported {url}: {len(imported.description)} chars of description, "
            f"{len(imported.amenities.split(',')) if imported.amenities else 0} amenities"
        )
        return imported
