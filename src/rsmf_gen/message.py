"""Assemble the RSMF message layer and write it to disk.

The container is a ``multipart/mixed`` MIME message: the plain-text body comes
first and the rsmf.zip attachment second. RSMF requires a 7-bit clean file, so
the message is built and rendered with a policy whose ``cte_type`` is
``7bit``: non-ASCII body text is quoted-printable or base64 encoded and
non-ASCII header text is RFC 2047 encoded.
"""

from __future__ import annotations

import os
import tempfile
from contextlib import suppress
from email import policy
from email.errors import MessageError
from email.headerregistry import Address
from email.message import EmailMessage
from pathlib import Path
from typing import Final

import structlog

from .errors import OutputError, SerializationError
from .models import Contact, RsmfHeaders

ATTACHMENT_FILENAME: Final[str] = "rsmf.zip"
RSMF_POLICY: Final = policy.SMTP.clone(cte_type="7bit")

_logger = structlog.get_logger("rsmf.message")


def _address(contact: Contact) -> Address:
    if contact.email:
        return Address(display_name=contact.display, addr_spec=contact.email)
    return Address(display_name=contact.display)


def assemble_message(headers: RsmfHeaders, body: str, archive: bytes) -> EmailMessage:
    """Combine headers, body text and the archive into one message.

    No Date, Message-ID or Subject header is emitted; RSMF does not need them.
    """
    message = EmailMessage(policy=RSMF_POLICY)
    try:
        for name, value in headers.items():
            message[name] = value
        if headers.sender is not None:
            message["From"] = _address(headers.sender)
        if headers.recipients:
            message["To"] = [_address(contact) for contact in headers.recipients]
        message.set_content(body)
        if not body:
            # set_content always terminates the text with a line break
            message.set_payload("")
        message.add_attachment(
            archive,
            maintype="application",
            subtype="octet-stream",
            disposition="attachment",
            filename=ATTACHMENT_FILENAME,
        )
    except (MessageError, ValueError, TypeError) as exc:
        # UnicodeEncodeError is a ValueError
        raise SerializationError(f"Failed to build the RSMF message: {exc}") from exc
    return message


def render_message(message: EmailMessage) -> bytes:
    """Flatten *message* to bytes and verify the result is 7-bit clean."""
    try:
        payload = message.as_bytes(policy=RSMF_POLICY)
    except (MessageError, ValueError, TypeError) as exc:
        raise SerializationError(f"Failed to serialize the RSMF message: {exc}") from exc
    if not payload.isascii():
        raise SerializationError("Serialized RSMF message is not 7-bit clean.")
    return payload


def write_message(message: EmailMessage, output_path: Path) -> Path:
    """Render *message* and atomically write it to *output_path*.

    The bytes go to a temporary sibling file first, so a failed write never
    leaves a partial RSMF file at the destination.
    """
    payload = render_message(message)
    destination = Path(output_path)
    try:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{destination.name}.", suffix=".tmp", dir=destination.parent)
    except OSError as exc:
        raise OutputError(f"Failed to write {destination}: {exc}") from exc

    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
        os.chmod(tmp_path, 0o644)
        os.replace(tmp_path, destination)
    except OSError as exc:
        with suppress(OSError):
            tmp_path.unlink()
        raise OutputError(f"Failed to write {destination}: {exc}") from exc

    _logger.debug("message.written", path=str(destination), size=len(payload))
    return destination
