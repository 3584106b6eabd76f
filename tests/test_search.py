"""Tests for filtering, ranking and the assistant."""

import pytest

from fluxstack.errors import ValidationError
from fluxstack.search import MAX_LIMIT
from fluxstack.search import apply_limit
from fluxstack.search import build_corpus
from fluxstack.search import list_categories
from fluxstack.search import parse_limit
from fluxstack.search import rank_tools
from fluxstack.search import recommend
from fluxstack.search import search_catalog
from tests.conftest import make_tool


@pytest.fixture
def catalog():
    return [
        make_tool(
            id="t1",
            name="StoryForge",
            category="Writing",
            description="Draft blog posts from an outline",
            tags=["draft", "posts", "outline"],
            votes=5,
        ),
        make_tool(
            id="t2",
            name="PixelPilot",
            category="Image",
            description="Generate logos and product photos",
            tags=["generate", "logos", "product"],
            votes=9,
        ),
        make_tool(
            id="t3",
            name="BlogBuddy",
            category="Writing",
            description="Keyword research for bloggers",
            tags=["keyword", "research", "bloggers"],
            votes=1,
        ),
        make_tool(
            id="t4",
            name="BugHound",
            category="Coding",
            description="Debug failing tests",
            tags=["debug", "failing", "tests"],
            votes=5,
        ),
    ]


class TestRankTools:
    def test_empty_query_orders_by_votes(self, catalog):
        ranked = rank_tools(catalog, "", "All")
        assert [tool.id for tool in ranked] == ["t2", "t1", "t4", "t3"]

    def test_equal_scores_keep_input_order(self):
        tools = [make_tool(id=f"t{i}", votes=3) for i in range(5)]
        assert [tool.id for tool in rank_tools(tools)] == ["t0", "t1", "t2", "t3", "t4"]

        reversed_tools = list(reversed(tools))
        assert [tool.id for tool in rank_tools(reversed_tools)] == ["t4", "t3", "t2", "t1", "t0"]

    def test_category_filter_is_exact(self, catalog):
        assert [tool.id for tool in rank_tools(catalog, "", "Writing")] == ["t1", "t3"]
        assert rank_tools(catalog, "", "writing") == []

    def test_every_query_word_must_match(self, catalog):
        ranked = rank_tools(catalog, "blog outline", "All")
        assert [tool.id for tool in ranked] == ["t1"]

    def test_words_match_anywhere_in_corpus(self, catalog):
        # "coding" only appears as the category, "tests" only in description/tags
        ranked = rank_tools(catalog, "CODING tests", "All")
        assert [tool.id for tool in ranked] == ["t4"]

    def test_results_only_contain_matching_tools(self, catalog):
        query = "  Blog   Writing "
        words = query.strip().lower().split()
        for tool in rank_tools(catalog, query, "All"):
            corpus = build_corpus(tool)
            assert all(word in corpus for word in words)

    def test_name_match_bonus(self):
        tools = [
            make_tool(id="plain", name="Helper", description="notes about pixels", votes=15),
            make_tool(id="named", name="Pixel Notes", description="pixel editor", votes=0),
        ]
        # "pixel notes" infers Productivity (notes); neither tool is Productivity
        ranked = rank_tools(tools, "pixel notes", "All")
        assert [tool.id for tool in ranked] == ["named", "plain"]

    def test_inferred_category_bonus(self, catalog):
        # "blog" infers Writing: StoryForge 5+20, BlogBuddy 1+20+20 (name contains "blog")
        ranked = rank_tools(catalog, "blog", "All")
        assert [tool.id for tool in ranked] == ["t3", "t1"]

    def test_scores_are_not_attached(self, catalog):
        for tool in rank_tools(catalog, "blog", "All"):
            assert "score" not in tool.to_record()
        assert [tool.votes for tool in catalog] == [5, 9, 1, 5]


class TestLimits:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (None, None),
            ("", None),
            ("abc", None),
            (0, None),
            (-3, None),
            ("-3", None),
            ("7", 7),
            ("5abc", 5),
            ("3.7", 3),
            (" 12 ", 12),
            (5000, MAX_LIMIT),
        ],
    )
    def test_parse_limit(self, value, expected):
        assert parse_limit(value) == expected

    def test_limit_applies_after_ranking(self, catalog):
        ranked = rank_tools(catalog)
        assert apply_limit(ranked, 2) == ranked[:2]
        assert [tool.id for tool in apply_limit(ranked, 1)] == ["t2"]


class TestSearchCatalog:
    def test_categories_come_from_full_collection(self, catalog):
        result = search_catalog(catalog, "debug", "Coding")
        assert result.categories == ["All", "Coding", "Image", "Writing"]
        assert [tool.id for tool in result.tools] == ["t4"]
        assert result.inferred_category == "Coding"

    def test_list_categories_is_prefixed_with_all(self):
        assert list_categories([]) == ["All"]

    def test_wire_shape(self, catalog):
        payload = search_catalog(catalog, "", "All", limit=1).model_dump(mode="json", by_alias=True)
        assert set(payload) == {"tools", "categories", "inferredCategory"}
        assert payload["inferredCategory"] is None
        assert len(payload["tools"]) == 1


class TestRecommend:
    def test_recommends_top_three_in_inferred_category(self):
        tools = [make_tool(id=f"w{i}", category="Writing", description="write copy", votes=i) for i in range(5)]
        tools.append(make_tool(id="img", category="Image", description="write copy", votes=100))

        result = recommend(tools, "write")

        assert result.inferred_category == "Writing"
        assert result.intro == "Based on your request, writing tools fit best."
        assert [tool.id for tool in result.recommendations] == ["w4", "w3", "w2"]

    def test_without_inferred_category(self, catalog):
        result = recommend(catalog, "keyword")
        assert result.inferred_category is None
        assert result.intro == "I found these tools based on your use case."
        assert [tool.id for tool in result.recommendations] == ["t3"]

    def test_blank_query_is_rejected(self, catalog):
        with pytest.raises(ValidationError) as exc_info:
            recommend(catalog, "   ")
        assert exc_info.value.field == "q"
