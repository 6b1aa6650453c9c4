"""Exception taxonomy for RSMF generation.

Every stage of the pipeline fails fast with one of these; callers only need to
catch :class:`RsmfError` to report any failure.
"""

from __future__ import annotations

from typing import Sequence


class RsmfError(RuntimeError):
    """Base class for all RSMF generation failures."""


class InputError(RsmfError):
    """Raised when the input directory or manifest file is missing, or the output location is unusable."""


class ManifestParseError(RsmfError):
    """Raised when rsmf_manifest.json is malformed or lacks a version."""


class ArchiveError(RsmfError):
    """Raised when the input directory cannot be packaged into rsmf.zip."""


class ValidationError(RsmfError):
    """Raised when the validator classifies the archive as failed."""

    def __init__(self, errors: Sequence[str]) -> None:
        self.errors: tuple[str, ...] = tuple(errors)
        detail = "\n".join(self.errors)
        super().__init__(f"Validation of the generated ZIP failed:\n{detail}" if detail else "Validation of the generated ZIP failed.")


class SerializationError(RsmfError):
    """Raised when the message container cannot be normalised to 7-bit or serialised."""


class OutputError(RsmfError):
    """Raised when the RSMF file cannot be written."""


__all__ = [
    "ArchiveError",
    "InputError",
    "ManifestParseError",
    "OutputError",
    "RsmfError",
    "SerializationError",
    "ValidationError",
]
