"""Top-level package for the RSMF generator."""

from __future__ import annotations

from .config import GenerationOptions
from .errors import (
    ArchiveError,
    InputError,
    ManifestParseError,
    OutputError,
    RsmfError,
    SerializationError,
    ValidationError,
)
from .generator import GenerationReport, RsmfGenerator, generate_rsmf

__all__ = [
    "ArchiveError",
    "GenerationOptions",
    "GenerationReport",
    "InputError",
    "ManifestParseError",
    "OutputError",
    "RsmfError",
    "RsmfGenerator",
    "SerializationError",
    "ValidationError",
    "generate_rsmf",
]
