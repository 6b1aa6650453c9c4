"""Pluggable structural validation of the rsmf.zip layer.

The generation pipeline depends only on the :class:`Validator` protocol and the
passed/failed classification it returns. :class:`ZipStructureValidator` is the
built-in implementation used by the CLI.
"""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass
from typing import Any, BinaryIO, Optional, Protocol
from zipfile import BadZipFile, ZipFile

import structlog

from .errors import RsmfError, ValidationError
from .manifest import MANIFEST_FILENAME

_logger = structlog.get_logger("rsmf.validator")


class ResultType(enum.Enum):
    PASSED = "passed"
    FAILED = "failed"


@dataclass(slots=True, frozen=True)
class ValidatorIssue:
    message: str
    location: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.location}: {self.message}" if self.location else self.message


@dataclass(slots=True, frozen=True)
class ValidatorResult:
    result: ResultType
    errors: tuple[ValidatorIssue, ...] = ()
    warnings: tuple[ValidatorIssue, ...] = ()

    @property
    def passed(self) -> bool:
        return self.result is ResultType.PASSED

    @classmethod
    def from_issues(cls, errors: list[ValidatorIssue], warnings: list[ValidatorIssue]) -> ValidatorResult:
        return cls(
            result=ResultType.FAILED if errors else ResultType.PASSED,
            errors=tuple(errors),
            warnings=tuple(warnings),
        )


class Validator(Protocol):
    def validate(self, archive: BinaryIO) -> ValidatorResult: ...


def ensure_valid(validator: Validator, archive: BinaryIO) -> ValidatorResult:
    """Run *validator* and raise :class:`ValidationError` when it reports failure.

    The stream is rewound before and after the call so later stages can read it.
    Warnings stay on the returned result; they are not raised or printed here.
    """
    archive.seek(0)
    try:
        result = validator.validate(archive)
    except RsmfError:
        raise
    except Exception as exc:
        _logger.warning("validation.crashed", error=str(exc))
        raise ValidationError([f"Validator raised: {exc}"]) from exc
    finally:
        archive.seek(0)
    if result.result is ResultType.FAILED:
        _logger.warning("validation.failed", errors=len(result.errors), warnings=len(result.warnings))
        raise ValidationError([str(issue) for issue in result.errors])
    _logger.debug("validation.passed", warnings=len(result.warnings))
    return result


def _references(manifest: dict[str, Any]) -> list[tuple[str, str]]:
    """Collect (location, filename) pairs for every file the manifest points at."""
    refs: list[tuple[str, str]] = []

    def _items(key: str) -> list[dict[str, Any]]:
        value = manifest.get(key)
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, dict)]

    for i, participant in enumerate(_items("participants")):
        if isinstance(participant.get("avatar"), str):
            refs.append((f"participants[{i}].avatar", participant["avatar"]))
    for i, conversation in enumerate(_items("conversations")):
        if isinstance(conversation.get("icon"), str):
            refs.append((f"conversations[{i}].icon", conversation["icon"]))
    for i, event in enumerate(_items("events")):
        attachments = event.get("attachments")
        if not isinstance(attachments, list):
            continue
        for j, attachment in enumerate(attachments):
            if isinstance(attachment, dict) and isinstance(attachment.get("id"), str):
                refs.append((f"events[{i}].attachments[{j}].id", attachment["id"]))
    return refs


def _ids(value: Any) -> set[str]:
    if not isinstance(value, list):
        return set()
    return {str(item["id"]) for item in value if isinstance(item, dict) and item.get("id") is not None}


class ZipStructureValidator:
    """Check that rsmf.zip is readable and consistent with its manifest."""

    def validate(self, archive: BinaryIO) -> ValidatorResult:
        errors: list[ValidatorIssue] = []
        warnings: list[ValidatorIssue] = []
        try:
            zf = ZipFile(archive)
        except BadZipFile as exc:
            errors.append(ValidatorIssue(f"Archive is not a readable ZIP file: {exc}"))
            return ValidatorResult.from_issues(errors, warnings)

        with zf:
            bad_member = zf.testzip()
            if bad_member is not None:
                errors.append(ValidatorIssue("Archive member failed its CRC check.", bad_member))
            names = set(zf.namelist())
            if MANIFEST_FILENAME not in names:
                errors.append(ValidatorIssue(f"{MANIFEST_FILENAME} is missing from the archive."))
                return ValidatorResult.from_issues(errors, warnings)
            raw = zf.read(MANIFEST_FILENAME)

        try:
            manifest = json.loads(raw.decode("utf-8-sig"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            errors.append(ValidatorIssue(f"Manifest is not valid JSON: {exc}", MANIFEST_FILENAME))
            return ValidatorResult.from_issues(errors, warnings)
        if not isinstance(manifest, dict):
            errors.append(ValidatorIssue("Manifest must be a JSON object.", MANIFEST_FILENAME))
            return ValidatorResult.from_issues(errors, warnings)

        if manifest.get("version") in (None, ""):
            errors.append(ValidatorIssue("Required field 'version' is missing.", "version"))

        referenced: set[str] = set()
        for location, filename in _references(manifest):
            referenced.add(filename)
            if filename not in names:
                errors.append(ValidatorIssue(f"Referenced file '{filename}' is not in the archive.", location))

        participant_ids = _ids(manifest.get("participants"))
        conversation_ids = _ids(manifest.get("conversations"))
        events = manifest.get("events")
        for i, event in enumerate(events if isinstance(events, list) else []):
            if not isinstance(event, dict):
                errors.append(ValidatorIssue("Event must be an object.", f"events[{i}]"))
                continue
            participant = event.get("participant")
            if participant is not None and str(participant) not in participant_ids:
                errors.append(ValidatorIssue(f"Unknown participant '{participant}'.", f"events[{i}].participant"))
            conversation = event.get("conversation")
            if conversation is not None and str(conversation) not in conversation_ids:
                warnings.append(ValidatorIssue(f"Unknown conversation '{conversation}'.", f"events[{i}].conversation"))

        for name in sorted(names - referenced - {MANIFEST_FILENAME}):
            warnings.append(ValidatorIssue("File is not referenced by the manifest.", name))

        return ValidatorResult.from_issues(errors, warnings)
