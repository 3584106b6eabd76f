"""Keyword-based category inference for free-text queries.

This is a heuristic signal used to boost ranking and to pick a category for
the assistant, not an authoritative classification. Matching is plain
substring containment, so "app" also hits "apply" and "art" hits "start".
"""

from typing import Dict
from typing import List
from typing import Optional

# Declaration order breaks ties.
CATEGORY_KEYWORDS: Dict[str, List[str]] = {
    "Writing": ["write", "copy", "content", "email", "blog", "script"],
    "Research": ["research", "study", "learn", "compare", "analysis", "citation"],
    "Image": ["image", "photo", "logo", "design", "art", "thumbnail"],
    "Video": ["video", "reel", "youtube", "edit", "motion", "clips"],
    "Audio": ["voice", "audio", "podcast", "speech", "music", "narration"],
    "Coding": ["code", "developer", "debug", "build", "app", "program"],
    "Productivity": ["notes", "task", "workflow", "organize", "meeting", "plan"],
}

CATEGORIES: List[str] = list(CATEGORY_KEYWORDS)


def keyword_hits(text: str) -> Dict[str, int]:
    """Count keyword hits per category for already lower-cased text."""
    return {
        category: sum(1 for keyword in keywords if keyword in text) for category, keywords in CATEGORY_KEYWORDS.items()
    }


def infer_category(text: Optional[str]) -> Optional[str]:
    """Return the category with the most keyword hits, or None when nothing matches."""
    if not text or not text.strip():
        return None

    best_category = None
    best_score = 0
    for category, score in keyword_hits(text.lower()).items():
        if score > best_score:
            best_category = category
            best_score = score

    return best_category
