"""Shared test fixtures for the doclinks test suite.

Design:
- content_root: isolated content directory in tmp_path
- sample_site: content root seeded with docs/wiki documents
- clock: controllable time source for cache TTL and recency tests
- runner / cli_invoke: CliRunner with DOCLINKS_* env pointing at tmp dirs
"""

import json
import logging
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from doclinks._logging import PACKAGE_LOGGER
from doclinks.cli import cli


# ─────────────────────────────────────────────────────────────────────────────
# Core Fixtures
# ─────────────────────────────────────────────────────────────────────────────


class FakeClock:
    """Manually advanced time source (epoch seconds)."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def content_root(tmp_path: Path) -> Path:
    """Empty content directory."""
    root = tmp_path / "contents"
    root.mkdir()
    return root


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    return tmp_path / "cache"


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path: Path):
    """Keep tests away from the developer's environment and working directory."""
    for var in ("DOCLINKS_CONTENT_ROOT", "DOCLINKS_ENV", "DOCLINKS_LOG_LEVEL", "DOCLINKS_QUIET"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("DOCLINKS_CACHE_DIR", str(tmp_path / "cache"))


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Drop handlers bound to a previous CliRunner's stderr."""
    yield
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def sample_site(content_root: Path) -> Path:
    """Content root with two doc types and an ambiguous title.

    Creates:
    - docs/api.mdx           "API"
    - docs/deploy.mdx        "Deployment Guide" (keywords: deploy, release)
    - docs/guides/react.mdx  "React" (keywords: frontend, jsx)
    - wiki/api.mdx           "API"
    - wiki/drafts.mdx        "Draft Notes" (status: draft)
    """
    create_doc(content_root, "docs/api.mdx", "API", order=1)
    create_doc(content_root, "docs/deploy.mdx", "Deployment Guide", keywords=["deploy", "release"], order=2)
    create_doc(content_root, "docs/guides/react.mdx", "React", keywords=["frontend", "jsx"])
    create_doc(content_root, "wiki/api.mdx", "API")
    create_doc(content_root, "wiki/drafts.mdx", "Draft Notes", status="draft")
    return content_root


@pytest.fixture
def runner() -> CliRunner:
    """CLI runner with isolated environment."""
    return CliRunner()


@pytest.fixture
def cli_invoke(runner: CliRunner, sample_site: Path, cache_dir: Path):
    """Helper for invoking the CLI against sample_site.

    Usage:
        def test_tree(cli_invoke):
            result = cli_invoke(["tree"])
            assert result.exit_code == 0
    """
    def _invoke(args: list[str], catch_exceptions: bool = False):
        return runner.invoke(
            cli,
            args,
            catch_exceptions=catch_exceptions,
            env={
                "DOCLINKS_CONTENT_ROOT": str(sample_site),
                "DOCLINKS_CACHE_DIR": str(cache_dir),
                "DOCLINKS_ENV": "production",
            },
        )
    return _invoke


# ─────────────────────────────────────────────────────────────────────────────
# Helper Functions (for test code, not fixtures)
# ─────────────────────────────────────────────────────────────────────────────


def create_doc(
    root: Path,
    path: str,
    title: str | None,
    content: str = "Body text.",
    **fields: Any,
) -> Path:
    """Write an .mdx document with YAML frontmatter.

    Usage in tests:
        from conftest import create_doc
        create_doc(content_root, "docs/intro.mdx", "Intro", keywords=["start"])
    """
    doc_path = root / path
    doc_path.parent.mkdir(parents=True, exist_ok=True)

    lines = ["---"]
    if title is not None:
        lines.append(f"title: {json.dumps(title)}")
    for key, value in fields.items():
        lines.append(f"{key}: {json.dumps(value)}")
    lines.append("---")
    doc_path.write_text("\n".join(lines) + f"\n\n{content}\n", encoding="utf-8")
    return doc_path


def create_folder_index(root: Path, path: str, **fields: Any) -> Path:
    """Write an index.json with folder metadata."""
    folder = root / path
    folder.mkdir(parents=True, exist_ok=True)
    index_file = folder / "index.json"
    index_file.write_text(json.dumps(fields), encoding="utf-8")
    return index_file
