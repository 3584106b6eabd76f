"""Slug and identifier generation for catalog records."""

import re
import secrets
import unicodedata
import uuid

TOOL_ID_PREFIX = "tool"
TOOL_SLUG_MAX_LENGTH = 40
TOOL_ID_SUFFIX_BYTES = 3


def generate_slug(text: str, max_length: int = 50) -> str:
    """
    Generate a URL-safe slug from text.

    Rules:
    - Lowercase, ASCII only
    - Hyphens instead of spaces/underscores
    - Remove punctuation except hyphens
    - Collapse multiple hyphens
    - Strip leading/trailing hyphens
    """
    if not text:
        return ""

    # Normalize unicode to ASCII
    text = unicodedata.normalize("NFKD", text)
    text = text.encode("ascii", "ignore").decode("ascii")

    text = text.lower()
    text = re.sub(r"[\s_]+", "-", text)
    text = re.sub(r"[^a-z0-9\-]", "", text)
    text = re.sub(r"-+", "-", text)
    text = text.strip("-")

    # Truncate to max length at word boundary
    if len(text) > max_length:
        text = text[:max_length]
        last_hyphen = text.rfind("-")
        if last_hyphen > max_length * 0.7:
            text = text[:last_hyphen]
        text = text.strip("-")

    return text


def generate_tool_id(name: str) -> str:
    """
    Build a tool id from its name plus a short random suffix.

    Examples:
    - "Story Forge" -> "tool-story-forge-3fa9c1"
    - "!!!" -> "tool-8d02be"
    """
    suffix = secrets.token_hex(TOOL_ID_SUFFIX_BYTES)
    slug = generate_slug(name, max_length=TOOL_SLUG_MAX_LENGTH)
    if not slug:
        return f"{TOOL_ID_PREFIX}-{suffix}"
    return f"{TOOL_ID_PREFIX}-{slug}-{suffix}"


def generate_submission_id() -> str:
    return str(uuid.uuid4())
