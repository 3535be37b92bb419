"""Tests for DocumentTreeBuilder: ordering, visibility, folder metadata, fallbacks."""

from __future__ import annotations

from pathlib import Path

from conftest import create_doc, create_folder_index

from doclinks.cache import CacheManager
from doclinks.config import TREE_CACHE_TTL
from doclinks.errors import ErrorReporter
from doclinks.models import ErrorCode
from doclinks.tree import TREE_CACHE_CONFIG, DocumentTreeBuilder, iter_nodes, tree_cache_key


def titles(nodes) -> list[str]:
    return [n.title for n in nodes]


# =============================================================================
# Structure
# =============================================================================


class TestTreeStructure:
    """Basic traversal."""

    def test_documents_and_folders(self, content_root: Path):
        create_doc(content_root, "intro.mdx", "Introduction")
        create_doc(content_root, "guides/setup.mdx", "Setup")

        tree = DocumentTreeBuilder(content_root).build()

        folder = next(n for n in tree if n.is_folder)
        assert folder.slug == "guides"
        assert folder.title == "guides"
        assert titles(folder.children) == ["Setup"]
        assert folder.children[0].slug == "guides/setup"

    def test_frontmatter_fields_carried(self, content_root: Path):
        create_doc(
            content_root,
            "guide.mdx",
            "Guide",
            description="How to",
            tags=["a"],
            category="howto",
            keywords=["manual"],
            date="2024-01-15",
            audience="ops",
        )

        node = DocumentTreeBuilder(content_root).build()[0]

        assert node.description == "How to"
        assert node.tags == ["a"]
        assert node.category == "howto"
        assert node.keywords == ["manual"]
        assert node.date == "2024-01-15"
        assert node.extra == {"audience": "ops"}
        assert node.last_modified is not None

    def test_skips_dot_and_underscore_entries(self, content_root: Path):
        create_doc(content_root, "visible.mdx", "Visible")
        create_doc(content_root, "_partial.mdx", "Partial")
        create_doc(content_root, ".hidden/doc.mdx", "Hidden")
        create_doc(content_root, "_drafts/doc.mdx", "Drafts")

        tree = DocumentTreeBuilder(content_root).build()

        assert titles(tree) == ["Visible"]

    def test_non_mdx_files_ignored(self, content_root: Path):
        create_doc(content_root, "doc.mdx", "Doc")
        (content_root / "notes.txt").write_text("plain")
        (content_root / "readme.md").write_text("---\ntitle: Readme\n---\n")

        assert titles(DocumentTreeBuilder(content_root).build()) == ["Doc"]

    def test_missing_root_yields_empty_tree(self, tmp_path: Path):
        assert DocumentTreeBuilder(tmp_path / "absent").build() == []

    def test_subpath_keeps_slug_prefix(self, content_root: Path):
        create_doc(content_root, "guides/setup.mdx", "Setup")

        tree = DocumentTreeBuilder(content_root).build("guides")

        assert [n.slug for n in tree] == ["guides/setup"]

    def test_iter_nodes_depth_first(self, content_root: Path):
        create_doc(content_root, "a/one.mdx", "One", order=1)
        create_doc(content_root, "a/two.mdx", "Two", order=2)
        create_doc(content_root, "b.mdx", "Bee")

        nodes = list(iter_nodes(DocumentTreeBuilder(content_root).build()))

        assert titles(nodes) == ["a", "One", "Two", "Bee"]


# =============================================================================
# Ordering
# =============================================================================


class TestTreeOrdering:
    """Order field with folder default 0 and file default 999."""

    def test_explicit_order(self, content_root: Path):
        create_doc(content_root, "b.mdx", "B", order=1)
        create_doc(content_root, "a.mdx", "A", order=2)

        assert titles(DocumentTreeBuilder(content_root).build()) == ["B", "A"]

    def test_unordered_folders_before_unordered_files(self, content_root: Path):
        create_doc(content_root, "aaa.mdx", "File")
        create_doc(content_root, "zzz/doc.mdx", "Nested")

        tree = DocumentTreeBuilder(content_root).build()

        assert titles(tree) == ["zzz", "File"]

    def test_equal_order_keeps_name_order(self, content_root: Path):
        create_doc(content_root, "beta.mdx", "Beta", order=5)
        create_doc(content_root, "alpha.mdx", "Alpha", order=5)

        assert titles(DocumentTreeBuilder(content_root).build()) == ["Alpha", "Beta"]

    def test_folder_order_from_metadata(self, content_root: Path):
        create_doc(content_root, "first.mdx", "First", order=1)
        create_doc(content_root, "later/doc.mdx", "Doc")
        create_folder_index(content_root, "later", title="Later", order=10)

        assert titles(DocumentTreeBuilder(content_root).build()) == ["First", "Later"]


# =============================================================================
# Folder metadata and visibility
# =============================================================================


class TestFolders:
    """index.json / index.mdx and empty-folder pruning."""

    def test_index_json_metadata(self, content_root: Path):
        create_doc(content_root, "guides/setup.mdx", "Setup")
        create_folder_index(content_root, "guides", title="Guides", description="All guides")

        folder = DocumentTreeBuilder(content_root).build()[0]

        assert folder.title == "Guides"
        assert folder.description == "All guides"

    def test_index_json_preferred_over_index_mdx(self, content_root: Path):
        create_folder_index(content_root, "guides", title="From JSON")
        create_doc(content_root, "guides/index.mdx", "From MDX")
        create_doc(content_root, "guides/setup.mdx", "Setup")

        folder = DocumentTreeBuilder(content_root).build()[0]

        assert folder.title == "From JSON"
        assert titles(folder.children) == ["Setup"]

    def test_index_mdx_metadata(self, content_root: Path):
        create_doc(content_root, "guides/index.mdx", "Guide Index", order=3)
        create_doc(content_root, "guides/setup.mdx", "Setup")

        folder = DocumentTreeBuilder(content_root).build()[0]

        assert folder.title == "Guide Index"
        assert folder.order == 3

    def test_folder_with_only_empty_subfolders_excluded(self, content_root: Path):
        (content_root / "empty" / "inner" / "deeper").mkdir(parents=True)
        create_doc(content_root, "doc.mdx", "Doc")

        assert titles(DocumentTreeBuilder(content_root).build()) == ["Doc"]

    def test_empty_folder_with_metadata_kept(self, content_root: Path):
        create_folder_index(content_root, "placeholder", title="Coming Soon")

        tree = DocumentTreeBuilder(content_root).build()

        assert titles(tree) == ["Coming Soon"]
        assert tree[0].children == []

    def test_draft_folder_hidden_from_anonymous(self, content_root: Path):
        create_folder_index(content_root, "internal", title="Internal", status="private")
        create_doc(content_root, "internal/doc.mdx", "Secret")

        builder = DocumentTreeBuilder(content_root)

        assert builder.build() == []
        assert titles(builder.build(is_authenticated=True)) == ["Internal"]


class TestVisibility:
    """draft/private documents."""

    def test_draft_and_private_hidden(self, content_root: Path):
        create_doc(content_root, "public.mdx", "Public")
        create_doc(content_root, "draft.mdx", "Draft", status="draft")
        create_doc(content_root, "private.mdx", "Private", status="private")

        builder = DocumentTreeBuilder(content_root)

        assert titles(builder.build()) == ["Public"]
        assert sorted(titles(builder.build(is_authenticated=True))) == ["Draft", "Private", "Public"]


# =============================================================================
# Parse failures
# =============================================================================


class TestParseFailures:
    """Bad frontmatter degrades the node and is reported."""

    def test_missing_title_uses_filename(self, content_root: Path):
        create_doc(content_root, "getting-started.mdx", None, description="no title")
        reporter = ErrorReporter()

        tree = DocumentTreeBuilder(content_root, reporter=reporter).build()

        assert titles(tree) == ["Getting Started"]
        assert tree[0].order == 999
        assert reporter.get_statistics() == {ErrorCode.PARSE_ERROR: 1}

    def test_no_frontmatter_uses_filename(self, content_root: Path):
        (content_root / "raw_notes.mdx").write_text("Just text\n")

        tree = DocumentTreeBuilder(content_root).build()

        assert titles(tree) == ["Raw Notes"]

    def test_malformed_index_json_reported(self, content_root: Path):
        (content_root / "guides").mkdir()
        (content_root / "guides" / "index.json").write_text("{broken")
        create_doc(content_root, "guides/setup.mdx", "Setup")
        reporter = ErrorReporter()

        tree = DocumentTreeBuilder(content_root, reporter=reporter).build()

        assert tree[0].title == "guides"
        assert len(reporter) == 1


# =============================================================================
# Caching
# =============================================================================


class TestTreeCache:
    """Trees are cached per subpath and auth state."""

    def test_cached_until_invalidated(self, content_root: Path):
        create_doc(content_root, "a.mdx", "A")
        builder = DocumentTreeBuilder(content_root)
        assert titles(builder.build()) == ["A"]

        create_doc(content_root, "b.mdx", "B")
        assert titles(builder.build()) == ["A"]

        builder.invalidate()
        assert titles(builder.build()) == ["A", "B"]

    def test_ttl_counts_from_build_not_last_read(self, content_root: Path, clock):
        create_doc(content_root, "one.mdx", "One")
        builder = DocumentTreeBuilder(content_root, cache=CacheManager(TREE_CACHE_CONFIG, clock=clock))
        builder.build()

        create_doc(content_root, "two.mdx", "Two")
        clock.advance(TREE_CACHE_TTL - 60)
        assert titles(builder.build()) == ["One"]

        clock.advance(120)
        assert titles(builder.build()) == ["One", "Two"]

    def test_shared_components_are_used_when_empty(self, content_root: Path):
        cache = CacheManager(TREE_CACHE_CONFIG)
        reporter = ErrorReporter()

        builder = DocumentTreeBuilder(content_root, cache=cache, reporter=reporter)

        assert builder.cache is cache
        assert builder.reporter is reporter

    def test_cache_key_includes_auth(self):
        assert tree_cache_key("", True) != tree_cache_key("", False)
        assert tree_cache_key("guides", False) == "doctree:guides:noauth"
