"""Format conversion from Omnivore HTML to Markdown notes."""

from .common import clean_heading_text, collapse_blank_lines
from .html_to_markdown import NoteMarkdownConverter, html_to_markdown

__all__ = [
    "NoteMarkdownConverter",
    "clean_heading_text",
    "collapse_blank_lines",
    "html_to_markdown",
]
