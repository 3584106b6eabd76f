import re
import uuid

from fluxstack.slugs import generate_slug
from fluxstack.slugs import generate_submission_id
from fluxstack.slugs import generate_tool_id


def test_generate_slug_lowercases_and_hyphenates():
    assert generate_slug("Story Forge_Pro") == "story-forge-pro"


def test_generate_slug_strips_punctuation_and_accents():
    assert generate_slug("  Café!! Writer -- v2 ") == "cafe-writer-v2"


def test_generate_slug_truncates_at_word_boundary():
    slug = generate_slug("alpha beta gamma delta epsilon", max_length=20)
    assert slug == "alpha-beta-gamma"


def test_generate_tool_id_uses_name_slug():
    tool_id = generate_tool_id("Story Forge")
    assert re.fullmatch(r"tool-story-forge-[0-9a-f]{6}", tool_id)


def test_generate_tool_id_without_usable_name():
    assert re.fullmatch(r"tool-[0-9a-f]{6}", generate_tool_id("!!!"))


def test_generated_ids_are_unique():
    assert len({generate_tool_id("Same Name") for _ in range(50)}) == 50
    assert uuid.UUID(generate_submission_id()).version == 4
