"""Common text helpers shared by the converters."""

import re

# Remnant left behind by anchor links inside headings, e.g. "[](#section-1)".
_EMPTY_LINK_PATTERN = re.compile(r"\[\]\([^)]+\)")

# Three or more newlines (optionally with whitespace-only lines between).
_BLANK_RUN_PATTERN = re.compile(r"\n[ \t]*(?:\n[ \t]*){2,}")


def clean_heading_text(text: str) -> str:
    """Strip empty-link remnants and surrounding whitespace from heading text.

    >>> clean_heading_text(" [](#intro)Introduction ")
    'Introduction'
    """
    return _EMPTY_LINK_PATTERN.sub("", text).strip()


def collapse_blank_lines(text: str) -> str:
    """Collapse runs of blank lines to a single blank line.

    Fenced code blocks are left untouched.  Leading and trailing whitespace
    is removed; non-empty output ends with exactly one newline.
    """
    parts = text.split("```")
    # Even-indexed parts are outside fences.
    for i in range(0, len(parts), 2):
        parts[i] = _BLANK_RUN_PATTERN.sub("\n\n", parts[i])
    collapsed = "```".join(parts).strip()
    return collapsed + "\n" if collapsed else ""
