"""Read rsmf_manifest.json into the immutable model and derive the RSMF headers."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Final, Optional, Sequence

import structlog

from .body import sort_events
from .config import GenerationOptions
from .errors import ManifestParseError
from .models import Contact, Conversation, Event, Manifest, Participant, Reaction, RsmfHeaders

MANIFEST_FILENAME: Final[str] = "rsmf_manifest.json"

_logger = structlog.get_logger("rsmf.manifest")


def _text(item: dict[str, Any], key: str, *, where: str) -> Optional[str]:
    """Return a scalar field as text; JSON null and missing keys are ``None``."""
    value = item.get(key)
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        raise ManifestParseError(f"{where}.{key} must be a scalar value, got {type(value).__name__}.")
    # Numbers and booleans keep their JSON spelling
    return json.dumps(value)


def _objects(container: dict[str, Any], key: str, *, where: str) -> Optional[list[dict[str, Any]]]:
    value = container.get(key)
    if value is None:
        return None
    if not isinstance(value, list):
        raise ManifestParseError(f"{where}.{key} must be a list, got {type(value).__name__}.")
    for index, item in enumerate(value):
        if not isinstance(item, dict):
            raise ManifestParseError(f"{where}.{key}[{index}] must be an object, got {type(item).__name__}.")
    return value


def _parse_event(raw: dict[str, Any], where: str) -> Event:
    reactions = _objects(raw, "reactions", where=where) or []
    return Event(
        participant=_text(raw, "participant", where=where),
        timestamp=_text(raw, "timestamp", where=where),
        body=_text(raw, "body", where=where),
        reactions=tuple(
            Reaction(value=_text(r, "value", where=f"{where}.reactions[{i}]")) for i, r in enumerate(reactions)
        ),
        conversation=_text(raw, "conversation", where=where),
    )


def load_manifest(text: str, *, source: str = MANIFEST_FILENAME) -> Manifest:
    """Parse manifest JSON text.

    Timestamps are kept verbatim; they are never parsed into datetimes because
    the begin/end headers must repeat the manifest's own RFC 3339 text.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ManifestParseError(f"{source} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ManifestParseError(f"{source} must contain a JSON object at the top level.")

    version = _text(data, "version", where="manifest")
    if not version:
        raise ManifestParseError(f"{source} is missing the required 'version' field.")

    participants = tuple(
        Participant(
            id=_text(p, "id", where=f"participants[{i}]"),
            display=_text(p, "display", where=f"participants[{i}]"),
            email=_text(p, "email", where=f"participants[{i}]"),
        )
        for i, p in enumerate(_objects(data, "participants", where="manifest") or [])
    )
    raw_events = _objects(data, "events", where="manifest")
    events = None
    if raw_events is not None:
        events = tuple(_parse_event(e, f"events[{i}]") for i, e in enumerate(raw_events))
    conversations = tuple(
        Conversation(
            id=_text(c, "id", where=f"conversations[{i}]"),
            display=_text(c, "display", where=f"conversations[{i}]"),
        )
        for i, c in enumerate(_objects(data, "conversations", where="manifest") or [])
    )
    return Manifest(version=version, participants=participants, events=events, conversations=conversations)


def parse_manifest(path: Path) -> Manifest:
    """Read and parse a manifest file (UTF-8, BOM tolerated)."""
    manifest_path = Path(path)
    try:
        text = manifest_path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as exc:
        raise ManifestParseError(f"Failed to read {manifest_path}: {exc}") from exc
    manifest = load_manifest(text, source=str(manifest_path))
    _logger.debug(
        "manifest.parsed",
        path=str(manifest_path),
        version=manifest.version,
        participants=len(manifest.participants),
        events=None if manifest.events is None else len(manifest.events),
    )
    return manifest


def derive_headers(manifest: Manifest, options: GenerationOptions) -> RsmfHeaders:
    sender = None
    if options.custodian_email:
        sender = Contact(display=options.custodian_display, email=options.custodian_email)

    recipients = tuple(Contact(display=p.display or "", email=p.email or "") for p in manifest.participants)

    event_count = begin_date = end_date = None
    if manifest.events is not None:
        ordered = sort_events(manifest.events)
        event_count = len(ordered)
        if event_count > 1:
            begin_date = ordered[0].timestamp
            end_date = ordered[-1].timestamp

    return RsmfHeaders(
        version=manifest.version,
        generator=options.generator,
        sender=sender,
        recipients=recipients,
        event_count=event_count,
        begin_date=begin_date,
        end_date=end_date,
    )


def read_manifest(
    path: Path, options: GenerationOptions
) -> tuple[RsmfHeaders, tuple[Participant, ...], Sequence[Event]]:
    """Parse ``path`` and return the derived headers with the participants and events."""
    manifest = parse_manifest(path)
    return derive_headers(manifest, options), manifest.participants, manifest.events or ()
