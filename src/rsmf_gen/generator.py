"""Convert an rsmf_manifest.json directory into a single RSMF file.

An RSMF file has three layers: the JSON layer (rsmf_manifest.json), the zip
layer (rsmf.zip holding the manifest and every attachment beside it) and the
message layer (a MIME message carrying X-RSMF-* headers, a body rendered from
the events and rsmf.zip as its only attachment).

Each stage finishes before the next starts and any failure aborts the run with
an :class:`~rsmf_gen.errors.RsmfError`; the output file is only written after
every earlier stage succeeded.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import structlog

from .archive import open_archive
from .body import build_body
from .config import GenerationOptions
from .errors import InputError
from .manifest import MANIFEST_FILENAME, derive_headers, parse_manifest
from .message import assemble_message, write_message
from .models import RsmfHeaders
from .validator import Validator, ZipStructureValidator, ensure_valid

_logger = structlog.get_logger("rsmf.generator")


@dataclass(slots=True, frozen=True)
class GenerationReport:
    """Summary of a successful run."""

    output_path: Path
    headers: RsmfHeaders
    body: str
    archive_size: int
    validated: bool
    duration_ms: float


def locate_manifest(input_dir: Path) -> Path:
    """Return the manifest path inside *input_dir* or raise :class:`InputError`."""
    directory = Path(input_dir)
    if not directory.is_dir():
        raise InputError(f"The input directory {directory} doesn't exist.")
    manifest = directory / MANIFEST_FILENAME
    if not manifest.is_file():
        raise InputError(f"The file {MANIFEST_FILENAME} does not exist in {directory}.")
    return manifest


def generate_rsmf(
    input_dir: Path,
    output_file: Path,
    options: GenerationOptions,
    validator: Optional[Validator] = None,
) -> GenerationReport:
    """Package *input_dir*, optionally validate it, and write the RSMF to *output_file*.

    *validator* is only consulted when ``options.validate`` is true; it defaults
    to :class:`ZipStructureValidator`.
    """
    started = time.perf_counter()
    manifest_path = locate_manifest(input_dir)
    log = _logger.bind(input_dir=str(input_dir), output=str(output_file))

    with open_archive(input_dir) as archive:
        if options.validate:
            ensure_valid(validator or ZipStructureValidator(), archive)

        manifest = parse_manifest(manifest_path)
        headers = derive_headers(manifest, options)
        body = build_body(manifest, options)

        payload = archive.getvalue()
        message = assemble_message(headers, body, payload)
        written = write_message(message, output_file)

    report = GenerationReport(
        output_path=written,
        headers=headers,
        body=body,
        archive_size=len(payload),
        validated=options.validate,
        duration_ms=(time.perf_counter() - started) * 1000,
    )
    log.info(
        "rsmf.written",
        events=headers.event_count,
        participants=len(headers.recipients),
        archive_size=report.archive_size,
        validated=report.validated,
        duration_ms=round(report.duration_ms, 1),
    )
    return report


class RsmfGenerator:
    """Reusable generator bound to one options value and validator.

    Holds no mutable state, so one instance may serve concurrent runs over
    different input and output paths.
    """

    def __init__(self, options: Optional[GenerationOptions] = None, validator: Optional[Validator] = None) -> None:
        self._options = options or GenerationOptions()
        self._validator = validator

    @property
    def options(self) -> GenerationOptions:
        return self._options

    def generate(self, input_dir: Path, output_file: Path) -> GenerationReport:
        return generate_rsmf(input_dir, output_file, self._options, validator=self._validator)
