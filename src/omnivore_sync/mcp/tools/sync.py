"""MCP tool handlers for Omnivore sync.

Defines three tools:

- ``omnivore_sync`` -- run a sync now.
- ``omnivore_sync_status`` -- show the cursor, synced counts and schedule.
- ``omnivore_reset_sync_data`` -- clear all sync state (needs ``confirm``).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import mcp.types as types

from ...core.async_utils import run_sync
from ...sync.models import RunStatus
from ...sync.reporter import format_run_report, result_to_json
from .errors import build_error_response
from .registry import ToolSpec

if TYPE_CHECKING:
    from ...service import SyncService

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


SYNC_TOOLS: list[types.Tool] = [
    types.Tool(
        name="omnivore_sync",
        description=(
            "Sync the Omnivore library into local notes now: new articles "
            "become notes, recent highlights are merged into dated notes."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    types.Tool(
        name="omnivore_sync_status",
        description=(
            "Show sync state -- last sync date, number of synced articles "
            "and highlights, and the automatic sync schedule."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    types.Tool(
        name="omnivore_reset_sync_data",
        description=(
            "Clear the last sync date, all synced item IDs, and synced "
            "highlights. The next sync will fetch all articles and "
            "highlights again."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "confirm": {
                    "type": "boolean",
                    "default": False,
                    "description": "Must be true to perform the reset",
                },
            },
            "required": ["confirm"],
        },
    ),
]


# ---------------------------------------------------------------------------
# Individual handlers
# ---------------------------------------------------------------------------


async def _handle_sync(
    service: SyncService, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``omnivore_sync`` tool."""
    result = await run_sync(service.run_now)
    return types.CallToolResult(
        content=[
            types.TextContent(type="text", text=format_run_report(result))
        ],
        structuredContent=result_to_json(result),
        isError=result.status is RunStatus.FAILED,
    )


async def _handle_status(
    service: SyncService, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``omnivore_sync_status`` tool."""
    info = await run_sync(service.status)
    schedule = info["schedule"]
    interval = schedule.get("interval_minutes") or 0

    lines = [
        "Omnivore sync status",
        f"  Sync type:          {info['sync_type']}",
        f"  Last sync:          {info['last_sync_date'] or 'never'}",
        f"  Synced articles:    {info['synced_items']}",
        f"  Synced highlights:  {info['synced_highlights']}",
        f"  Running:            {'yes' if info['running'] else 'no'}",
        "  Automatic sync:     "
        + (f"every {interval} min" if interval else "off"),
    ]
    if schedule.get("next_run_time"):
        lines.append(f"  Next run:           {schedule['next_run_time']}")
    if not info["state_ok"]:
        lines.append(f"  State file is corrupt: {info['state_error']}")
    if not info["api_key_configured"]:
        lines.append("  API key is not set.")

    return types.CallToolResult(
        content=[types.TextContent(type="text", text="\n".join(lines))],
        structuredContent=info,
    )


async def _handle_reset(
    service: SyncService, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``omnivore_reset_sync_data`` tool."""
    if args.get("confirm") is not True:
        return build_error_response(
            "validation_error",
            "Reset requires explicit confirmation.",
            "Call omnivore_reset_sync_data again with confirm=true.",
        )

    result = await run_sync(service.reset, True)
    if result.status is RunStatus.SKIPPED:
        return build_error_response(
            "busy",
            result.message or "A sync is in progress.",
            "Wait for the current sync to finish, then retry.",
        )
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=result.message or "")],
        structuredContent=result_to_json(result),
    )


_HANDLERS = {
    "omnivore_sync": _handle_sync,
    "omnivore_sync_status": _handle_status,
    "omnivore_reset_sync_data": _handle_reset,
}

SYNC_SPECS: list[ToolSpec] = [
    ToolSpec(tool=tool, handler=_HANDLERS[tool.name]) for tool in SYNC_TOOLS
]
