"""Omnivore HTML to Markdown converter.

Built on ``markdownify`` with one domain-specific rule: headings are
rendered ATX-style with the anchor-link remnants Omnivore leaves inside
them removed, and are always surrounded by exactly one blank line.

Everything else follows markdownify's standard mapping, configured for
fenced code blocks, ``-`` bullets and unescaped underscores (Omnivore
content is prose, not Markdown source).
"""

from __future__ import annotations

from markdownify import ATX, MarkdownConverter

from .common import clean_heading_text, collapse_blank_lines


class NoteMarkdownConverter(MarkdownConverter):
    """``MarkdownConverter`` with normalised headings."""

    def __init__(self, **options) -> None:
        options.setdefault("heading_style", ATX)
        options.setdefault("bullets", "-")
        options.setdefault("escape_underscores", False)
        options.setdefault("escape_asterisks", False)
        super().__init__(**options)

    def convert_hN(self, n, el, text, parent_tags):
        if "_inline" in parent_tags:
            return text
        level = max(1, min(6, n))
        clean = clean_heading_text(text)
        if not clean:
            return ""
        return "\n\n" + "#" * level + " " + clean + "\n\n"


_converter = NoteMarkdownConverter()


def html_to_markdown(html: str) -> str:
    """Convert an Omnivore article body to Markdown.

    Pure and deterministic: identical input always yields identical
    output, so it is safe to call repeatedly or from several threads.

    Args:
        html: Article HTML (may be empty).

    Returns:
        Markdown text ending in a single newline, or ``""`` for empty input.
    """
    if not html or not html.strip():
        return ""
    return collapse_blank_lines(_converter.convert(html))
