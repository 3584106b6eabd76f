"""Filtering and ranking of catalog tools."""

import logging
import re
from typing import Any
from typing import Iterable
from typing import List
from typing import Optional

from .classifier import infer_category
from .errors import ValidationError
from .models import Recommendation
from .models import SearchResult
from .models import Tool

logger = logging.getLogger(__name__)

ALL_CATEGORIES = "All"
MAX_LIMIT = 100
ASSISTANT_RESULTS = 3
CATEGORY_BONUS = 20
NAME_BONUS = 20
LEADING_INT = re.compile(r"\s*[+-]?\d+")


def build_corpus(tool: Tool) -> str:
    """Searchable text for a tool: name, description, tags and category."""
    return f"{tool.name} {tool.description} {' '.join(tool.tags or [])} {tool.category}".lower()


def matches_category(tool: Tool, category: str) -> bool:
    return category == ALL_CATEGORIES or tool.category == category


def matches_query(tool: Tool, words: List[str]) -> bool:
    """AND semantics: every query word must appear somewhere in the corpus."""
    if not words:
        return True
    corpus = build_corpus(tool)
    return all(word in corpus for word in words)


def score_tool(tool: Tool, clean_query: str, inferred_category: Optional[str]) -> int:
    score = tool.votes
    if inferred_category and inferred_category == tool.category:
        score += CATEGORY_BONUS
    if clean_query and clean_query in tool.name.lower():
        score += NAME_BONUS
    return score


def rank_tools(tools: Iterable[Tool], query: str = "", category: str = ALL_CATEGORIES) -> List[Tool]:
    """Filter tools by category and query words, then order by score.

    Scores live in a side table and are never attached to the returned tools.
    Equal scores keep their input order (``sorted`` is stable, also with
    ``reverse=True``).
    """
    clean_query = (query or "").strip().lower()
    words = clean_query.split()
    inferred_category = infer_category(clean_query)

    candidates = [tool for tool in tools if matches_category(tool, category) and matches_query(tool, words)]
    scores = {id(tool): score_tool(tool, clean_query, inferred_category) for tool in candidates}
    return sorted(candidates, key=lambda tool: scores[id(tool)], reverse=True)


def parse_limit(value: Any) -> Optional[int]:
    """Leading integer of value, clamped to MAX_LIMIT; anything non-positive means no limit.

    "5abc" reads as 5 and "3.7" as 3.
    """
    if value is None or isinstance(value, bool):
        return None
    match = LEADING_INT.match(str(value))
    if not match:
        return None
    limit = int(match.group(0))
    if limit <= 0:
        return None
    return min(limit, MAX_LIMIT)


def apply_limit(tools: List[Tool], limit: Any) -> List[Tool]:
    parsed = parse_limit(limit)
    if parsed is None:
        return tools
    return tools[:parsed]


def list_categories(tools: Iterable[Tool]) -> List[str]:
    """Distinct categories of the whole collection, prefixed with "All"."""
    return [ALL_CATEGORIES, *sorted({tool.category for tool in tools})]


def search_catalog(
    tools: List[Tool],
    query: str = "",
    category: str = ALL_CATEGORIES,
    limit: Any = None,
) -> SearchResult:
    clean_query = (query or "").strip()
    ranked = apply_limit(rank_tools(tools, clean_query, category or ALL_CATEGORIES), limit)
    return SearchResult(
        tools=ranked,
        categories=list_categories(tools),
        inferred_category=infer_category(clean_query.lower()),
    )


def recommend(tools: List[Tool], query: str) -> Recommendation:
    """Pick the top tools for a described use case."""
    clean_query = (query or "").strip()
    if not clean_query:
        raise ValidationError("q", "Query is required")

    inferred_category = infer_category(clean_query.lower())
    recommendations = rank_tools(tools, clean_query, inferred_category or ALL_CATEGORIES)[:ASSISTANT_RESULTS]

    if inferred_category:
        intro = f"Based on your request, {inferred_category.lower()} tools fit best."
    else:
        intro = "I found these tools based on your use case."

    logger.debug(f"Assistant query {clean_query!r} -> {inferred_category} ({len(recommendations)} picks)")
    return Recommendation(intro=intro, inferred_category=inferred_category, recommendations=recommendations)

