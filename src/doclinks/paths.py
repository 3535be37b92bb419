"""Path and alias resolution for document links.

All paths are URL-style POSIX paths, independent of the host OS.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from typing import Iterable, Mapping


@dataclass(frozen=True)
class PathAlias:
    """A literal path prefix and its replacement."""

    alias: str
    path: str


class AliasResolver:
    """Substitute configured path prefixes. The first matching alias wins."""

    def __init__(self, aliases: Iterable[PathAlias | Mapping[str, str]] = ()) -> None:
        self._aliases: list[PathAlias] = [
            a if isinstance(a, PathAlias) else PathAlias(alias=a["alias"], path=a["path"])
            for a in aliases
        ]

    @property
    def aliases(self) -> list[PathAlias]:
        return list(self._aliases)

    def add_alias(self, alias: str, path: str) -> None:
        self._aliases.append(PathAlias(alias=alias, path=path))

    def resolve_alias(self, path: str) -> str:
        for entry in self._aliases:
            if entry.alias and path.startswith(entry.alias):
                return entry.path + path[len(entry.alias):]
        return path


class PathResolver:
    """Resolve link targets against a source document or a base path."""

    def __init__(self, base_path: str = "/") -> None:
        self.base_path = _to_posix(base_path) or "/"

    def resolve_relative_path(self, source: str, target: str) -> str:
        """Resolve `target` to a normalized path.

        `./` and `../` targets resolve against the directory of `source`;
        anything else resolves against the base path.

        Examples (base path "/"):
            ("/docs/guide/intro", "./setup") -> "/docs/guide/setup"
            ("/docs/guide/intro", "../api") -> "/docs/api"
            ("", "/wiki/api") -> "/wiki/api"
        """
        target = _to_posix(target)
        if target.startswith("./") or target.startswith("../"):
            directory = posixpath.dirname(_to_posix(source))
            return posixpath.normpath(posixpath.join(directory, target))

        return posixpath.normpath(posixpath.join(self.base_path, target.lstrip("/")))

    def generate_slug(self, path: str) -> str:
        """Derive a flat slug from a content path.

        "/docs/Guides/Getting-Started.mdx" with base "/docs" -> "guides-getting-started"
        """
        path = _to_posix(path)
        stem, _ext = posixpath.splitext(path)

        if stem.startswith("/") == self.base_path.startswith("/"):
            try:
                relative = posixpath.relpath(stem, self.base_path)
            except ValueError:
                relative = stem
            if relative == "." or relative.startswith("../"):
                relative = stem
        else:
            relative = stem

        return relative.strip("/").replace("/", "-").lower()


def _to_posix(path: str) -> str:
    return path.replace("\\", "/")
