"""Immutable data models for RSMF manifests and the headers derived from them."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional

HEADER_VERSION = "X-RSMF-Version"
HEADER_GENERATOR = "X-RSMF-Generator"
HEADER_EVENT_COUNT = "X-RSMF-EventCount"
HEADER_BEGIN_DATE = "X-RSMF-BeginDate"
HEADER_END_DATE = "X-RSMF-EndDate"


@dataclass(slots=True, frozen=True)
class Participant:
    id: Optional[str] = None
    display: Optional[str] = None
    email: Optional[str] = None


@dataclass(slots=True, frozen=True)
class Reaction:
    value: Optional[str] = None


@dataclass(slots=True, frozen=True)
class Conversation:
    id: Optional[str] = None
    display: Optional[str] = None


@dataclass(slots=True, frozen=True)
class Event:
    """One transcript entry; every field may be missing in the manifest."""

    participant: Optional[str] = None
    timestamp: Optional[str] = None
    body: Optional[str] = None
    reactions: tuple[Reaction, ...] = ()
    conversation: Optional[str] = None


@dataclass(slots=True, frozen=True)
class Manifest:
    """Parsed rsmf_manifest.json.

    ``events`` is ``None`` when the manifest has no ``events`` key at all, which
    suppresses the event count header; an empty list still yields a count of 0.
    """

    version: str
    participants: tuple[Participant, ...] = ()
    events: Optional[tuple[Event, ...]] = None
    conversations: tuple[Conversation, ...] = ()

    def find_participant(self, participant_id: Optional[str]) -> Optional[Participant]:
        """Return the first participant with a display name whose id matches."""
        if participant_id is None:
            return None
        for participant in self.participants:
            if participant.id is not None and participant.display is not None and participant.id == participant_id:
                return participant
        return None

    def find_conversation(self, conversation_id: Optional[str]) -> Optional[Conversation]:
        if conversation_id is None:
            return None
        for conversation in self.conversations:
            if conversation.id is not None and conversation.display is not None and conversation.id == conversation_id:
                return conversation
        return None


@dataclass(slots=True, frozen=True)
class Contact:
    """A display name and email pair used for the From and To identities."""

    display: str
    email: str


@dataclass(slots=True, frozen=True)
class RsmfHeaders:
    """Header set of the RSMF message layer.

    Address headers are kept as :class:`Contact` values; everything else is
    exposed as ordered name/value pairs by :meth:`items`.
    """

    version: str
    generator: str
    sender: Optional[Contact] = None
    recipients: tuple[Contact, ...] = ()
    event_count: Optional[int] = None
    begin_date: Optional[str] = None
    end_date: Optional[str] = None

    def items(self) -> Iterator[tuple[str, str]]:
        yield HEADER_VERSION, self.version
        yield HEADER_GENERATOR, self.generator
        if self.event_count is not None:
            yield HEADER_EVENT_COUNT, str(self.event_count)
        if self.begin_date is not None:
            yield HEADER_BEGIN_DATE, self.begin_date
        if self.end_date is not None:
            yield HEADER_END_DATE, self.end_date
