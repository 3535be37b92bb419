"""CLI tests for dl.

Covers each command with:
- One happy path
- The main failure mode
- --json output where supported

Design:
- Uses fixtures from conftest.py (sample_site, cli_invoke, runner)
- Runs against real content directories, production cache profile
"""

import json
from pathlib import Path

import pytest
from conftest import create_doc

from doclinks import __version__ as DOCLINKS_VERSION
from doclinks.cli import cli


# ─────────────────────────────────────────────────────────────────────────────
# Command Lists
# ─────────────────────────────────────────────────────────────────────────────

ALL_COMMANDS = [
    "tree",
    "index",
    "duplicates",
    "resolve",
    "links",
    "similar",
    "errors",
    "cache",
    "serve",
]

JSON_COMMANDS = [
    ["tree", "--json"],
    ["index", "--json"],
    ["duplicates", "--json"],
    ["resolve", "React", "--json"],
    ["similar", "api", "--json"],
    ["cache", "stats", "--json"],
]


# ─────────────────────────────────────────────────────────────────────────────
# Global behaviour
# ─────────────────────────────────────────────────────────────────────────────


class TestGlobal:
    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert DOCLINKS_VERSION in result.output

    @pytest.mark.parametrize("command", ALL_COMMANDS)
    def test_help(self, runner, command):
        result = runner.invoke(cli, [command, "--help"])
        assert result.exit_code == 0
        assert "Usage:" in result.output

    @pytest.mark.parametrize("args", JSON_COMMANDS)
    def test_json_output_parses(self, cli_invoke, args):
        result = cli_invoke(args)
        assert result.exit_code == 0, result.output
        json.loads(result.stdout)

    def test_typo_suggestion(self, cli_invoke):
        result = cli_invoke(["resolv", "React"])

        assert result.exit_code == 2
        assert "Did you mean 'resolve'?" in result.output

    def test_missing_content_root_json_error(self, runner, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        result = runner.invoke(cli, ["--json-errors", "tree"])

        assert result.exit_code == 1
        payload = json.loads(result.output.strip().splitlines()[-1])
        assert payload["error"]["code"] == "CONFIGURATION_ERROR"

    @pytest.mark.parametrize(
        "args,code",
        [
            (["resolve"], "MISSING_ARGUMENT"),
            (["resolve", "API", "--strategy", "loose"], "INVALID_ARGUMENT"),
            (["resolve", "API", "--bogus"], "UNKNOWN_OPTION"),
        ],
    )
    def test_json_usage_errors(self, runner, args, code):
        result = runner.invoke(cli, ["--json-errors", *args])

        assert result.exit_code == 1
        payload = json.loads(result.output.strip().splitlines()[-1])
        assert payload["error"]["code"] == code

    def test_content_root_option(self, runner, sample_site):
        result = runner.invoke(cli, ["--content-root", str(sample_site), "tree"])
        assert result.exit_code == 0
        assert "Deployment Guide" in result.output


# ─────────────────────────────────────────────────────────────────────────────
# Tree and index
# ─────────────────────────────────────────────────────────────────────────────


class TestTree:
    def test_tree(self, cli_invoke):
        result = cli_invoke(["tree"])

        assert result.exit_code == 0
        assert "docs/" in result.output
        assert "API  (docs/api)" in result.output
        assert "Draft Notes" not in result.output

    def test_tree_auth(self, cli_invoke):
        result = cli_invoke(["tree", "--auth"])
        assert "Draft Notes  (wiki/drafts) [draft]" in result.output

    def test_tree_subpath_json(self, cli_invoke):
        result = cli_invoke(["tree", "wiki", "--json"])

        data = json.loads(result.stdout)
        assert [n["slug"] for n in data] == ["wiki/api"]

    def test_empty_tree(self, runner, content_root):
        result = runner.invoke(cli, ["--content-root", str(content_root), "tree"])
        assert "No documents found." in result.output


class TestIndex:
    def test_summary(self, cli_invoke):
        result = cli_invoke(["index"])

        assert result.exit_code == 0
        assert "ambiguous (4 documents)" in result.output
        assert "api (ambiguous): /docs/api, /wiki/api" in result.output

    def test_duplicates(self, cli_invoke):
        result = cli_invoke(["duplicates"])

        assert "API:" in result.output
        assert "  - /wiki/api (wiki)" in result.output
        assert "Hint:" in result.output

    def test_no_duplicates(self, runner, content_root):
        create_doc(content_root, "docs/one.mdx", "One")

        result = runner.invoke(cli, ["--content-root", str(content_root), "duplicates"])

        assert "No duplicate titles." in result.output


# ─────────────────────────────────────────────────────────────────────────────
# Resolution
# ─────────────────────────────────────────────────────────────────────────────


class TestResolve:
    def test_resolve(self, cli_invoke):
        result = cli_invoke(["resolve", "react"])

        assert result.exit_code == 0
        assert "React -> /docs/guides/react" in result.output

    def test_ambiguous_lists_alternatives(self, cli_invoke):
        result = cli_invoke(["resolve", "API"])

        assert "API -> /docs/api" in result.output
        assert "also: API -> /wiki/api" in result.output

    def test_doc_type_json(self, cli_invoke):
        result = cli_invoke(["resolve", "API", "--doc-type", "wiki", "--json"])

        data = json.loads(result.stdout)
        assert data["mapping"]["path"] == "/wiki/api"
        assert data["isAmbiguous"] is False

    def test_not_found_exits_1(self, cli_invoke):
        result = cli_invoke(["resolve", "deplyo"])

        assert result.exit_code == 1
        assert "Not found:" in result.output
        assert "Did you mean: deploy" in result.output

    def test_strategy_override(self, cli_invoke):
        result = cli_invoke(["resolve", "Deploy", "--strategy", "fuzzy"])

        assert result.exit_code == 0
        assert "Deployment Guide -> /docs/deploy" in result.output

    def test_invalid_strategy(self, cli_invoke):
        result = cli_invoke(["resolve", "API", "--strategy", "loose"])
        assert result.exit_code == 2

    def test_auth_includes_drafts(self, cli_invoke):
        assert cli_invoke(["resolve", "Draft Notes"]).exit_code == 1
        assert cli_invoke(["resolve", "Draft Notes", "--auth"]).exit_code == 0


class TestLinks:
    @pytest.fixture
    def page(self, sample_site: Path) -> Path:
        return create_doc(sample_site, "docs/intro.mdx", "Intro", content="See [[React]] and [[Nope]].")

    def test_render(self, cli_invoke, page):
        result = cli_invoke(["links", str(page)])

        assert result.exit_code == 0
        assert result.output.startswith("See <KeywordLink keyword=\"React\" isValid={true}")
        assert '<KeywordLink keyword="Nope" isValid={false}' in result.output
        assert "title:" not in result.output

    def test_json_segments(self, cli_invoke, page):
        result = cli_invoke(["links", str(page), "--json"])

        segments = json.loads(result.stdout)
        assert segments[0] == {"text": "See "}
        assert segments[1]["keyword"] == "React"
        assert segments[1]["isValid"] is True
        assert json.loads(segments[1]["initialData"])["mapping"]["path"] == "/docs/guides/react"

    def test_missing_file(self, cli_invoke, tmp_path):
        result = cli_invoke(["links", str(tmp_path / "absent.mdx")])
        assert result.exit_code == 2


class TestSimilar:
    def test_similar(self, cli_invoke):
        result = cli_invoke(["similar", "deploy"])

        assert result.exit_code == 0
        assert "Deployment Guide -> /docs/deploy" in result.output

    def test_no_results(self, cli_invoke):
        assert "No similar documents." in cli_invoke(["similar", "kubernetes"]).output


class TestErrors:
    def test_duplicates_reported(self, cli_invoke):
        result = cli_invoke(["errors"])

        assert result.exit_code == 0
        assert "DUPLICATE_ERROR:" in result.output

    def test_json_statistics(self, cli_invoke):
        result = cli_invoke(["-q", "errors", "--json"])

        data = json.loads(result.stdout)
        assert data["statistics"] == {"DUPLICATE_ERROR": 1}

    def test_parse_errors_reported_on_every_run(self, cli_invoke, sample_site):
        create_doc(sample_site, "docs/untitled.mdx", None, description="no title")

        first = cli_invoke(["errors"])
        second = cli_invoke(["errors"])

        assert "PARSE_ERROR:" in first.output
        assert "PARSE_ERROR:" in second.output

    def test_clean_site(self, runner, content_root):
        create_doc(content_root, "docs/one.mdx", "One")

        result = runner.invoke(cli, ["--content-root", str(content_root), "errors"])

        assert "No problems found." in result.output


# ─────────────────────────────────────────────────────────────────────────────
# Cache
# ─────────────────────────────────────────────────────────────────────────────


class TestCache:
    def test_stats(self, cli_invoke, cache_dir):
        result = cli_invoke(["cache", "stats", "--json"])

        data = json.loads(result.stdout)
        assert data["cache_dir"] == str(cache_dir)
        assert data["config"]["persist_to_disk"] is True
        assert data["hits"] == 0

    def test_clear(self, cli_invoke, cache_dir):
        cli_invoke(["index"])
        assert list(cache_dir.glob("*.json"))

        result = cli_invoke(["cache", "clear"])

        assert "Cache cleared." in result.output
        assert list(cache_dir.glob("*.json")) == []
