"""
Property Data Chunker

Turns raw property data into bounded, embeddable chunks.

Algorithm:
    1. Split each section on structural boundaries (paragraphs, list items)
    2. Split any unit above the token budget at sentence boundaries, and any
       sentence still above budget on word boundaries
    3. Pack consecutive small units of the same section up to the budget
    4. Prior answers become one chunk per question/answer pair; a long
       answer is split like any other unit, each piece keeping its question

Each chunk carries the sha256 of its normalized text so re-indexing can tell
unchanged content from new content.
"""

import re
from collections.abc import Callable

from concierge_kb.types import ChunkInput, PropertyData, SourceType
from concierge_kb.utils.text import content_hash, normalize_text
from concierge_kb.utils.token_count import count_text_tokens

# Regex patterns
_PARAGRAPH_PATTERN = re.compile(r"\n\s*\n")
_SENTENCE_PATTERN = re.compile(r"(?<=[.!?])\s+")
_BULLET_PATTERN = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s+")

_AMENITY_PREFIX = "Amenities: "
_RULE_PREFIX = "House rules: "


def chunk_property_data(
    data: PropertyData,
    *,
    max_tokens: int = 200,
    model: str = "gpt-4o-mini",
) -> list[ChunkInput]:
    """
    Split property data into chunks.

    Args:
        data: Raw property data
        max_tokens: Token budget per chunk
        model: Model whose tokenizer measures the budget

    Returns:
        ChunkInput objects in a stable order, unique by (source_type, content_hash)
    """

    def count(text: str) -> int:
        return count_text_tokens(text, model)

    prior_answers: list[str] = []
    for p in data.prior_answers:
        if p.question.strip() and p.answer.strip():
            prefix = _prior_answer_prefix(p.question)
            prior_answers.extend(_pack([normalize_text(p.answer)], prefix, " ", max_tokens, count))
    recommendations: list[str] = []
    for r in data.recommendations:
        text = _recommendation_text(r.title, r.description, r.category, r.link)
        recommendations.extend(_pack([text], "", " ", max_tokens, count))

    sections: list[tuple[SourceType, list[str]]] = [
        (SourceType.DESCRIPTION, _pack(_paragraphs(data.description), "", "\n\n", max_tokens, count)),
        (SourceType.AMENITY, _pack(_items(data.amenities), _AMENITY_PREFIX, ", ", max_tokens, count)),
        (SourceType.POLICY, _pack(_rules(data.rules), _RULE_PREFIX, " ", max_tokens, count)),
        (SourceType.PRIOR_ANSWER, prior_answers),
        (SourceType.RECOMMENDATION, recommendations),
    ]

    chunks: list[ChunkInput] = []
    seen: set[tuple[SourceType, str]] = set()
    position = 0

    for source_type, texts in sections:
        for text in texts:
            text = text.strip()
            if not text:
                continue
            digest = content_hash(text)
            if (source_type, digest) in seen:
                continue
            seen.add((source_type, digest))
            chunks.append(
                ChunkInput(
                    source_type=source_type,
                    text=text,
                    content_hash=digest,
                    position=position,
                )
            )
            position += 1

    return chunks


def _paragraphs(text: str) -> list[str]:
    """Paragraphs of free text; bullet lines inside a paragraph stay separate units."""
    units: list[str] = []
    for block in _PARAGRAPH_PATTERN.split(text or ""):
        lines = [line for line in block.splitlines() if line.strip()]
        if any(_BULLET_PATTERN.match(line) for line in lines):
            units.extend(normalize_text(line) for line in lines)
        elif lines:
            units.append(normalize_text(" ".join(lines)))
    return [u for u in units if u]


def _items(values: list[str]) -> list[str]:
    return [normalize_text(v) for v in values if v and v.strip()]


def _rules(values: list[str]) -> list[str]:
    """Rules read as sentences; a missing terminal period is added."""
    rules = []
    for value in _items(values):
        rules.append(value if value[-1] in ".!?" else f"{value}.")
    return rules


def _prior_answer_prefix(question: str) -> str:
    return f"Q: {normalize_text(question)}\nA: "


def _recommendation_text(
    title: str,
    description: str,
    category: str | None,
    link: str | None,
) -> str:
    head = f"Recommendation: {normalize_text(title)}"
    if category:
        head += f" ({normalize_text(category)})"
    text = f"{head}. {normalize_text(description)}"
    if link:
        text += f" {link.strip()}"
    return text


def _pack(
    units: list[str],
    prefix: str,
    joiner: str,
    max_tokens: int,
    count: Callable[[str], int],
) -> list[str]:
    """
    Greedily pack consecutive units into chunks of at most max_tokens.

    Units that alone exceed the budget are split first, so every returned
    chunk fits unless a single word does not.
    """
    budget = max(1, max_tokens - count(prefix)) if prefix else max_tokens

    pieces: list[str] = []
    for unit in units:
        if count(unit) <= budget:
            pieces.append(unit)
        else:
            pieces.extend(_split_oversize(unit, budget, count))

    chunks: list[str] = []
    current: list[str] = []
    for piece in pieces:
        candidate = joiner.join([*current, piece])
        if current and count(prefix + candidate) > max_tokens:
            chunks.append(prefix + joiner.join(current))
            current = [piece]
        else:
            current.append(piece)
    if current:
        chunks.append(prefix + joiner.join(current))

    return chunks


def _split_oversize(unit: str, budget: int, count: Callable[[str], int]) -> list[str]:
    """Split at sentence boundaries, hard-wrapping sentences above budget."""
    pieces: list[str] = []
    for sentence in _SENTENCE_PATTERN.split(unit):
        sentence = sentence.strip()
        if not sentence:
            continue
        if count(sentence) <= budget:
            pieces.append(sentence)
        else:
            pieces.extend(_wrap_words(sentence, budget, count))
    return pieces


def _wrap_words(sentence: str, budget: int, count: Callable[[str], int]) -> list[str]:
    lines: list[str] = []
    current: list[str] = []
    for word in sentence.split():
        if current and count(" ".join([*current, word])) > budget:
            lines.append(" ".join(current))
            current = [word]
        else:
            current.append(word)
    if current:
        lines.append(" ".join(current))
    return lines
