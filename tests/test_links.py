"""Tests for [[Keyword]] extraction and link rewriting."""

from __future__ import annotations

import json

from doclinks.models import DocumentMappingItem, ResolvedKeyword
from doclinks.parser.links import (
    KeywordLink,
    TextSegment,
    extract_keywords,
    link_keywords,
    render_segments,
)


def resolved_ok(keyword: str, path: str = "/docs/react") -> ResolvedKeyword:
    mapping = DocumentMappingItem(title=keyword, path=path, slug=path.strip("/"), doc_type="docs")
    return ResolvedKeyword(keyword=keyword, mapping=mapping)


class FakeResolve:
    """Resolve callable that records calls."""

    def __init__(self, known: dict[str, ResolvedKeyword] | None = None):
        self.known = known or {}
        self.calls: list[str] = []

    def __call__(self, keyword: str) -> ResolvedKeyword:
        self.calls.append(keyword)
        if keyword in self.known:
            return self.known[keyword]
        return ResolvedKeyword.failure(keyword, f'No document matches keyword "{keyword}"')


class TestExtractKeywords:
    def test_unique_in_order(self):
        content = "See [[React]] and [[API]], then [[React]] again."
        assert extract_keywords(content) == ["React", "API"]

    def test_whitespace_trimmed_and_blank_skipped(self):
        assert extract_keywords("[[  Deploy ]] [[   ]]") == ["Deploy"]

    def test_no_references(self):
        assert extract_keywords("Plain [text] and [link](url)") == []


class TestLinkKeywords:
    def test_segments_in_document_order(self):
        resolve = FakeResolve({"React": resolved_ok("React")})

        segments = link_keywords("Use [[React]] here.", resolve)

        assert segments[0] == TextSegment("Use ")
        assert isinstance(segments[1], KeywordLink)
        assert segments[1].keyword == "React"
        assert segments[1].is_valid
        assert segments[2] == TextSegment(" here.")

    def test_each_keyword_resolved_once(self):
        resolve = FakeResolve({"React": resolved_ok("React")})

        segments = link_keywords("[[React]] and [[React]]", resolve)

        assert resolve.calls == ["React"]
        assert segments[0] is segments[2]

    def test_unresolved_is_invalid(self):
        segments = link_keywords("[[Missing]]", FakeResolve())

        link = segments[0]
        assert not link.is_valid
        assert json.loads(link.initial_data) == {
            "keyword": "Missing",
            "error": 'No document matches keyword "Missing"',
            "isAmbiguous": False,
        }

    def test_ambiguous_is_invalid(self):
        ambiguous = resolved_ok("API").model_copy(
            update={"is_ambiguous": True, "alternatives": [resolved_ok("API", "/wiki/api").mapping]}
        )

        link = link_keywords("[[API]]", FakeResolve({"API": ambiguous}))[0]

        assert not link.is_valid

    def test_content_without_references(self):
        assert link_keywords("Nothing to see", FakeResolve()) == [TextSegment("Nothing to see")]
        assert link_keywords("", FakeResolve()) == []


class TestRender:
    def test_render_element(self):
        link = KeywordLink(keyword="React", is_valid=True, doc_type=None, initial_data='{"a": "b"}')

        assert link.render() == (
            '<KeywordLink keyword="React" isValid={true} docType={null} '
            'initialData="{&quot;a&quot;: &quot;b&quot;}" />'
        )

    def test_render_doc_type(self):
        link = KeywordLink(keyword="API", is_valid=False, doc_type="wiki", initial_data="{}")
        assert 'docType="wiki"' in link.render()
        assert "isValid={false}" in link.render()

    def test_render_segments_round_trips_plain_text(self):
        resolve = FakeResolve({"React": resolved_ok("React")})
        content = "Before [[React]] after"

        rendered = render_segments(link_keywords(content, resolve))

        assert rendered.startswith("Before <KeywordLink keyword=\"React\"")
        assert rendered.endswith(" /> after")
        assert "[[" not in rendered
