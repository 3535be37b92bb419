#!/usr/bin/env python3
"""
dl: CLI for doclinks

Usage:
    dl tree                          # Browse the document tree
    dl index                         # Keyword index summary
    dl duplicates                    # Titles shared by several documents
    dl resolve "React"               # Resolve a [[Keyword]]
    dl links docs/intro.mdx          # Rewrite [[Keyword]] references in a file
    dl cache stats                   # Cache metrics
"""

from __future__ import annotations

import asyncio
import difflib
import json
import sys
from pathlib import Path
from typing import Any, NoReturn

import click
from click.exceptions import ClickException, UsageError

from . import __version__ as DOCLINKS_VERSION


def run_async(coro):
    """Run async function synchronously."""
    return asyncio.run(coro)


def output(data, as_json: bool = False):
    """Output data as JSON or formatted text."""
    if as_json:
        click.echo(json.dumps(data, indent=2, default=str))
    else:
        click.echo(data)


# ─────────────────────────────────────────────────────────────────────────────
# JSON Error Handling
# ─────────────────────────────────────────────────────────────────────────────

# Checked in order: MissingParameter and NoSuchOption subclass the later entries.
CLICK_ERROR_CODES: tuple[tuple[type[ClickException], str], ...] = (
    (click.MissingParameter, "MISSING_ARGUMENT"),
    (click.BadParameter, "INVALID_ARGUMENT"),
    (click.NoSuchOption, "UNKNOWN_OPTION"),
    (UsageError, "USAGE_ERROR"),
)


def click_error_code(exc: ClickException) -> str:
    for exc_type, code in CLICK_ERROR_CODES:
        if isinstance(exc, exc_type):
            return code
    return "CLI_ERROR"


def json_error(code: str, message: str, details: dict | None = None) -> str:
    """One-line JSON error payload written to stderr under --json-errors."""
    payload: dict[str, Any] = {"code": code, "message": message}
    if details:
        payload["details"] = details
    return json.dumps({"error": payload}, default=str)


def _handle_error(
    ctx: click.Context,
    error: Exception,
    fallback_message: str | None = None,
    exit_code: int = 1,
) -> NoReturn:
    """Report an error on stderr, as JSON when --json-errors is set, and exit."""
    from .config import ConfigurationError
    from .errors import DoclinksError

    json_errors = ctx.obj.get("json_errors", False) if ctx.obj else False

    if isinstance(error, DoclinksError):
        if json_errors:
            click.echo(json_error(error.code.value, error.message, error.details), err=True)
        else:
            click.echo(f"Error: {error.message}", err=True)
    else:
        message = fallback_message or str(error)
        if json_errors:
            code = "CONFIGURATION_ERROR" if isinstance(error, ConfigurationError) else "INTERNAL_ERROR"
            click.echo(json_error(code, message), err=True)
        else:
            click.echo(f"Error: {message}", err=True)

    sys.exit(exit_code)


# ─────────────────────────────────────────────────────────────────────────────
# Command Group
# ─────────────────────────────────────────────────────────────────────────────


class JsonErrorGroup(click.Group):
    """Click group that formats errors as JSON when --json-errors is set.

    Also suggests the closest command name for typos.
    """

    def resolve_command(self, ctx, args):
        try:
            return super().resolve_command(ctx, args)
        except UsageError as e:
            cmd_name = args[0] if args else ""
            if cmd_name and "No such command" in str(e):
                matches = difflib.get_close_matches(cmd_name, self.list_commands(ctx), n=1, cutoff=0.6)
                if matches:
                    raise UsageError(f"No such command '{cmd_name}'. Did you mean '{matches[0]}'?")
            raise

    def invoke(self, ctx):
        try:
            return super().invoke(ctx)
        except ClickException as e:
            if ctx.params.get("json_errors"):
                click.echo(json_error(click_error_code(e), e.format_message()), err=True)
                raise SystemExit(1)
            raise


def _get_service(ctx: click.Context):
    """Create the DocLinks service once per invocation."""
    from .config import ConfigurationError, get_content_root
    from .core import DocLinks

    obj = ctx.find_root().ensure_object(dict)
    service = obj.get("service")
    if service is not None:
        return service

    try:
        root = obj.get("content_root") or get_content_root()
    except ConfigurationError as exc:
        _handle_error(ctx, exc)

    service = DocLinks(Path(root))
    obj["service"] = service
    ctx.find_root().call_on_close(service.close)
    return service


# ─────────────────────────────────────────────────────────────────────────────
# Main CLI Group
# ─────────────────────────────────────────────────────────────────────────────


@click.group(cls=JsonErrorGroup)
@click.version_option(version=DOCLINKS_VERSION, prog_name="dl")
@click.option(
    "--content-root",
    "content_root",
    type=click.Path(file_okay=False, path_type=Path),
    envvar="DOCLINKS_CONTENT_ROOT",
    help="Content directory (default: $DOCLINKS_CONTENT_ROOT or ./contents)",
)
@click.option(
    "--json-errors",
    "json_errors",
    is_flag=True,
    help="Output errors as JSON (for programmatic use)",
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    envvar="DOCLINKS_QUIET",
    help="Suppress warnings, show only errors and essential output",
)
@click.pass_context
def cli(ctx: click.Context, content_root: Path | None, json_errors: bool, quiet: bool):
    """dl: documentation keyword links.

    Builds the document tree of a content directory, indexes titles and
    keywords, and resolves [[Keyword]] references to documents.

    \b
    Examples:
      dl tree --auth                  # Include draft/private documents
      dl resolve "API" --doc-type wiki
      dl resolve "setup" --context /docs/guides
      dl --json-errors resolve ...    # Errors as JSON
    """
    from ._logging import configure_logging

    configure_logging(quiet=quiet)
    ctx.ensure_object(dict)
    ctx.obj["content_root"] = content_root
    ctx.obj["json_errors"] = json_errors
    ctx.obj["quiet"] = quiet


# ─────────────────────────────────────────────────────────────────────────────
# Tree and index
# ─────────────────────────────────────────────────────────────────────────────


def _format_tree(nodes, depth: int = 0) -> list[str]:
    lines = []
    for node in nodes:
        indent = "  " * depth
        if node.is_folder:
            lines.append(f"{indent}{node.title}/")
        else:
            status = f" [{node.status}]" if node.status != "published" else ""
            lines.append(f"{indent}{node.title}  ({node.slug}){status}")
        lines.extend(_format_tree(node.children, depth + 1))
    return lines


@cli.command()
@click.argument("subpath", default="")
@click.option("--auth", "is_authenticated", is_flag=True, help="Include draft and private documents")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def tree(ctx: click.Context, subpath: str, is_authenticated: bool, as_json: bool):
    """Show the document tree.

    \b
    Examples:
      dl tree
      dl tree guides --json
    """
    service = _get_service(ctx)
    nodes = service.get_doc_tree(subpath, is_authenticated)

    if as_json:
        output([n.model_dump(mode="json") for n in nodes], as_json=True)
        return

    if not nodes:
        click.echo("No documents found.")
        return
    click.echo("\n".join(_format_tree(nodes)))


@cli.command()
@click.option("--auth", "is_authenticated", is_flag=True, help="Include draft and private documents")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def index(ctx: click.Context, is_authenticated: bool, as_json: bool):
    """Show the keyword index."""
    service = _get_service(ctx)
    keyword_index = service.get_keyword_index(is_authenticated)

    if as_json:
        output(keyword_index.model_dump(mode="json"), as_json=True)
        return

    ambiguous = [k for k, entry in keyword_index.index.items() if entry.is_ambiguous]
    documents = service.count_documents(is_authenticated)
    click.echo(f"{len(keyword_index.index)} keywords, {len(ambiguous)} ambiguous ({documents} documents)")
    for key, entry in sorted(keyword_index.index.items()):
        marker = " (ambiguous)" if entry.is_ambiguous else ""
        paths = ", ".join(doc.path for doc in entry.documents)
        click.echo(f"  {key}{marker}: {paths}")


@cli.command()
@click.option("--auth", "is_authenticated", is_flag=True, help="Include draft and private documents")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def duplicates(ctx: click.Context, is_authenticated: bool, as_json: bool):
    """List titles used by more than one document."""
    service = _get_service(ctx)
    found = service.get_keyword_index(is_authenticated).duplicates

    if as_json:
        output([d.model_dump(mode="json") for d in found], as_json=True)
        return

    if not found:
        click.echo("No duplicate titles.")
        return
    for duplicate in found:
        click.echo(f"{duplicate.title}:")
        for occurrence in duplicate.occurrences:
            click.echo(f"  - {occurrence.path} ({occurrence.doc_type})")
        click.echo(f"  Hint: {duplicate.suggestion}")


# ─────────────────────────────────────────────────────────────────────────────
# Resolution
# ─────────────────────────────────────────────────────────────────────────────


@cli.command()
@click.argument("keyword")
@click.option("--doc-type", "doc_type", help="Only match documents of this doc type")
@click.option("--context", help="Current location, e.g. /docs/guides/setup")
@click.option(
    "--strategy",
    type=click.Choice(["strict", "fuzzy", "adaptive"]),
    help="Override the configured resolve strategy",
)
@click.option("--auth", "is_authenticated", is_flag=True, help="Include draft and private documents")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def resolve(
    ctx: click.Context,
    keyword: str,
    doc_type: str | None,
    context: str | None,
    strategy: str | None,
    is_authenticated: bool,
    as_json: bool,
):
    """Resolve a keyword to a document. Exits 1 when nothing matches.

    \b
    Examples:
      dl resolve "React"
      dl resolve "API" --doc-type wiki --json
    """
    service = _get_service(ctx)
    if strategy:
        service.resolver.set_resolve_strategy(strategy)

    result = run_async(
        service.resolve_keyword(keyword, doc_type=doc_type, context=context, is_authenticated=is_authenticated)
    )

    if as_json:
        output(result.to_payload(), as_json=True)
    elif result.mapping is not None:
        click.echo(f"{result.mapping.title} -> {result.mapping.path}")
        for alt in result.alternatives or []:
            click.echo(f"  also: {alt.title} -> {alt.path}")
        if result.related_keywords:
            click.echo(f"  related: {', '.join(result.related_keywords)}")
    else:
        click.echo(f"Not found: {result.error}", err=True)
        if result.related_keywords:
            click.echo(f"Did you mean: {', '.join(result.related_keywords)}?", err=True)

    if not result.ok:
        sys.exit(1)


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--doc-type", "doc_type", help="Only match documents of this doc type")
@click.option("--context", help="Current location (default: derived from FILE)")
@click.option("--json", "as_json", is_flag=True, help="Output segments as JSON")
@click.pass_context
def links(ctx: click.Context, file: Path, doc_type: str | None, context: str | None, as_json: bool):
    """Rewrite [[Keyword]] references in FILE into KeywordLink elements."""
    import frontmatter

    from .parser.links import KeywordLink, render_segments

    service = _get_service(ctx)
    try:
        body = frontmatter.load(str(file)).content
    except Exception as exc:
        _handle_error(ctx, exc, f"Cannot read {file}: {exc}")

    if context is None:
        try:
            relative = file.resolve().relative_to(service.content_root.resolve())
            context = "/" + relative.with_suffix("").as_posix()
        except ValueError:
            context = None

    segments = run_async(service.link_keywords(body, doc_type=doc_type, context=context))

    if as_json:
        output(
            [
                s.attributes() if isinstance(s, KeywordLink) else {"text": s.value}
                for s in segments
            ],
            as_json=True,
        )
    else:
        click.echo(render_segments(segments))


@cli.command()
@click.argument("term")
@click.option("--limit", default=5, show_default=True, help="Maximum results")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def similar(ctx: click.Context, term: str, limit: int, as_json: bool):
    """Find documents whose title, description or path match TERM."""
    service = _get_service(ctx)
    found = service.find_similar_documents(term, limit=limit)

    if as_json:
        output([d.model_dump(mode="json", by_alias=True) for d in found], as_json=True)
        return
    if not found:
        click.echo("No similar documents.")
        return
    for doc in found:
        click.echo(f"{doc.score:>4g}  {doc.title} -> {doc.path}")


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def errors(ctx: click.Context, as_json: bool):
    """Rebuild the index and list the problems found (bad frontmatter, duplicates)."""
    from .errors import DuplicateKeywordError
    from .indexer import build_keyword_index

    service = _get_service(ctx)
    # Parse errors are only reported while walking the tree, so skip cached trees
    service.tree_builder.invalidate()
    keyword_index = build_keyword_index(service.get_doc_tree(is_authenticated=True))
    for duplicate in keyword_index.duplicates:
        service.reporter.report(DuplicateKeywordError(duplicate.title, duplicate.occurrences))

    records = service.reporter.get_errors()
    if as_json:
        output(
            {
                "errors": [r.model_dump(mode="json") for r in records],
                "statistics": {k.value: v for k, v in service.reporter.get_statistics().items()},
            },
            as_json=True,
        )
        return

    if not records:
        click.echo("No problems found.")
        return
    for record in records:
        click.echo(f"{record.type.value}: {record.message}")


# ─────────────────────────────────────────────────────────────────────────────
# Cache Command Group
# ─────────────────────────────────────────────────────────────────────────────


@cli.group()
def cache():
    """Inspect or clear the cache."""


@cache.command("stats")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def cache_stats(ctx: click.Context, as_json: bool):
    """Show cache metrics and configuration."""
    service = _get_service(ctx)
    metrics = service.cache.get_metrics()
    data = {
        **metrics.model_dump(),
        "cache_dir": str(service.cache.cache_dir) if service.cache.cache_dir else None,
        "config": service.cache_config.model_dump(),
    }

    if as_json:
        output(data, as_json=True)
        return
    click.echo(f"Entries:      {metrics.size}")
    click.echo(f"Hits/misses:  {metrics.hits}/{metrics.misses}")
    click.echo(f"Memory usage: {metrics.memory_usage} bytes")
    click.echo(f"Cache dir:    {data['cache_dir'] or '(memory only)'}")


@cache.command("clear")
@click.pass_context
def cache_clear(ctx: click.Context):
    """Remove every cached tree, index and mapping (memory and disk)."""
    service = _get_service(ctx)
    service.invalidate()
    click.echo("Cache cleared.")


# ─────────────────────────────────────────────────────────────────────────────
# Server
# ─────────────────────────────────────────────────────────────────────────────


@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8000, show_default=True, type=int)
@click.pass_context
def serve(ctx: click.Context, host: str, port: int):
    """Serve the HTTP API (requires the 'serve' extra)."""
    try:
        import uvicorn
    except ImportError as exc:
        _handle_error(ctx, exc, "uvicorn is not installed. Install with: pip install 'doclinks[serve]'")

    from .webapp.api import create_app

    service = _get_service(ctx)
    uvicorn.run(create_app(service), host=host, port=port)


def main():
    cli()


if __name__ == "__main__":
    main()
