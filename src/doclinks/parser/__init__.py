"""Frontmatter parsing and [[Keyword]] link handling."""

from .frontmatter import load_folder_metadata, parse_document, title_from_filename
from .links import (
    KEYWORD_PATTERN,
    KeywordLink,
    Segment,
    TextSegment,
    extract_keywords,
    link_keywords,
    render_segments,
)

__all__ = [
    "KEYWORD_PATTERN",
    "KeywordLink",
    "Segment",
    "TextSegment",
    "extract_keywords",
    "link_keywords",
    "load_folder_metadata",
    "parse_document",
    "render_segments",
    "title_from_filename",
]
