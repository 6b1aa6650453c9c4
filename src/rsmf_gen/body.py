"""Render transcript events into the plain-text body of an RSMF file.

The body text becomes the extracted text of the document downstream, so events
are written oldest first to keep proximity search hits close to what the RSMF
viewer shows.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Iterable, Optional

from .models import Event, Manifest

if TYPE_CHECKING:
    from .config import GenerationOptions


def _sort_key(event: Event) -> str:
    return event.timestamp if event.timestamp is not None else ""


def sort_events(events: Iterable[Event]) -> list[Event]:
    """Return events in ascending timestamp order.

    Comparison is ordinal on the raw text, so it is only chronological when all
    timestamps share one lexically sortable format (e.g. UTC ISO 8601 with fixed
    precision). Missing timestamps sort first; ties keep manifest order.
    """
    return sorted(events, key=_sort_key)


def _format_timestamp(value: str) -> str:
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return value
    return dt.strftime("%Y-%m-%d %H:%M")


def build_body(manifest: Manifest, options: Optional[GenerationOptions] = None) -> str:
    if manifest.events is None:
        return ""
    include_conversation = bool(options and options.include_conversation)
    include_timestamp = bool(options and options.include_timestamp)

    lines: list[str] = []
    for event in sort_events(manifest.events):
        if include_conversation:
            conversation = manifest.find_conversation(event.conversation)
            if conversation is not None:
                lines.extend(["", f"Conversation:      {conversation.display}", ""])
        participant = manifest.find_participant(event.participant)
        if participant is not None:
            lines.extend([participant.display or "", ""])
        if include_timestamp and event.timestamp is not None:
            lines.extend([_format_timestamp(event.timestamp), ""])
        if event.body is not None:
            lines.append(event.body)
        lines.append("")
        for reaction in event.reactions:
            if reaction.value:
                lines.extend([reaction.value, ""])
        lines.append("")
    return "".join(f"{line}\n" for line in lines)
