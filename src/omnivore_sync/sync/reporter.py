"""Sync run report formatting functions.

Provides human-readable and machine-readable output for sync runs:

- ``format_run_report`` -- full post-run summary.
- ``result_to_json`` -- structured dict for MCP tool and ``--json`` output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .models import RunStatus, SyncAction

if TYPE_CHECKING:
    from .models import RunResult

# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_run_report(result: RunResult) -> str:
    """Format a run result as human-readable text.

    Sections are only included when they contain at least one result.
    Skipped items are summarised by count only.

    Args:
        result: The completed run result.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    lines.append(f"Omnivore sync {result.status.value} ({result.sync_type})")
    lines.append(f"Started: {result.started_at}")
    if result.completed_at:
        lines.append(f"Completed: {result.completed_at}")
    lines.append("")

    if result.status is RunStatus.SKIPPED:
        lines.append(result.message or "Sync skipped.")
        return "\n".join(lines).rstrip()

    created = [
        r for r in result.article_notes if r.action == SyncAction.CREATE_NOTE
    ]
    updated = [
        r for r in result.article_notes if r.action == SyncAction.UPDATE_NOTE
    ]

    lines.append(
        f"{len(created)} notes created, {len(updated)} updated, "
        f"{result.highlights_merged} highlights merged into "
        f"{len(result.highlight_notes)} notes, {len(result.errors)} errors"
    )
    lines.append("")

    if created:
        lines.append("Created:")
        for r in created:
            lines.append(f"  {r.title}")
        lines.append("")

    if updated:
        lines.append("Updated:")
        for r in updated:
            lines.append(f"  {r.title}")
        lines.append("")

    if result.highlight_notes:
        lines.append("Highlights:")
        for r in result.highlight_notes:
            lines.append(f"  {r.title} (+{len(r.item_ids)})")
        lines.append("")

    if result.errors:
        lines.append("Errors:")
        for r in result.errors:
            lines.append(f"  {r.title}: {r.error}")
        lines.append("")

    skipped = result.articles_skipped + result.highlights_skipped
    if skipped > 0:
        lines.append(
            f"Skipped: {result.articles_skipped} articles, "
            f"{result.highlights_skipped} highlights (already synced)"
        )
        lines.append("")

    if result.last_sync_date:
        lines.append(f"Cursor: {result.last_sync_date}")
    if result.message:
        lines.append(result.message)

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def result_to_json(result: RunResult) -> dict:
    """Convert a run result to a structured dict for JSON serialisation.

    Suitable for MCP ``structuredContent`` output.

    Args:
        result: The run result.

    Returns:
        Dict with status, counts, and per-note details.
    """
    results_list = []
    for r in result.results:
        entry: dict = {
            "title": r.title,
            "action": r.action.value,
            "success": r.success,
            "item_ids": list(r.item_ids),
        }
        if r.error:
            entry["error"] = r.error
        results_list.append(entry)

    return {
        "status": result.status.value,
        "phase": result.phase.value,
        "sync_type": result.sync_type,
        "message": result.message,
        "last_sync_date": result.last_sync_date,
        "started_at": result.started_at,
        "completed_at": result.completed_at,
        "counts": {
            "created": sum(
                1
                for r in result.article_notes
                if r.action == SyncAction.CREATE_NOTE
            ),
            "updated": sum(
                1
                for r in result.article_notes
                if r.action == SyncAction.UPDATE_NOTE
            ),
            "highlight_notes": len(result.highlight_notes),
            "highlights_merged": result.highlights_merged,
            "articles_skipped": result.articles_skipped,
            "highlights_skipped": result.highlights_skipped,
            "errors": len(result.errors),
        },
        "results": results_list,
    }
