"""Read-merge-write of highlight blocks into period notes.

A period note body is a sequence of highlight blocks separated by blank
lines.  Each block is delimited by ``<!-- omnivore-highlight:<id> -->``
and ``<!-- /omnivore-highlight -->`` markers (see ``mapper``).

Key design choices:

* Merging never drops text: anything outside the markers (including the
  user's own edits between blocks) is preserved verbatim.
* A block whose id is already present is **replaced in place**, so an
  edited highlight keeps its position in the note.
* New blocks are **appended** in the order given, which the engine
  guarantees to be ascending creation time.
"""

from __future__ import annotations

import re

_BLOCK_PATTERN = re.compile(
    r"<!-- omnivore-highlight:(?P<id>[^\s>]+) -->\n.*?<!-- /omnivore-highlight -->",
    re.DOTALL,
)


def block_ids(body: str) -> list[str]:
    """Return the highlight ids present in *body*, in document order."""
    return [m.group("id") for m in _BLOCK_PATTERN.finditer(body)]


def merge_highlight_blocks(
    existing_body: str | None,
    blocks: list[tuple[str, str]],
) -> str:
    """Merge rendered highlight blocks into a period note body.

    Args:
        existing_body: Current note body, or ``None`` for a new note.
        blocks: ``(highlight_id, rendered_block)`` pairs in the order
            they should be appended.

    Returns:
        The merged body, ending in a single newline.
    """
    body = (existing_body or "").rstrip()
    pending: dict[str, str] = {}
    for highlight_id, block in blocks:
        pending[highlight_id] = block.strip()

    replaced: set[str] = set()

    def _replace(match: re.Match) -> str:
        highlight_id = match.group("id")
        if highlight_id in pending:
            replaced.add(highlight_id)
            return pending[highlight_id]
        return match.group(0)

    body = _BLOCK_PATTERN.sub(_replace, body)

    appended = [
        pending[hid] for hid in pending if hid not in replaced
    ]
    parts = [body] if body else []
    parts.extend(appended)
    return "\n\n".join(parts) + "\n"
