"""Build the rsmf.zip layer in memory from an input directory."""

from __future__ import annotations

import io
import shutil
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from zipfile import ZIP_DEFLATED, ZipFile, ZipInfo

import structlog

from .errors import ArchiveError

_logger = structlog.get_logger("rsmf.archive")


def _top_level_files(source: Path) -> list[Path]:
    try:
        return [p for p in source.iterdir() if p.is_file()]
    except OSError as exc:
        raise ArchiveError(f"Failed to list input directory {source}: {exc}") from exc


def build_archive(input_dir: Path) -> bytes:
    """Return a deflated ZIP of every regular file directly inside *input_dir*.

    Entries are named after the file's base name; subdirectories are skipped.
    Entry order follows the filesystem and is not part of the contract.
    """
    source = Path(input_dir)
    if not source.is_dir():
        raise ArchiveError(f"ZIP source must be a directory (got {source}).")

    buffer = io.BytesIO()
    count = 0
    with ZipFile(buffer, mode="w", compression=ZIP_DEFLATED) as archive:
        for path in _top_level_files(source):
            try:
                # Keep the file's own modification time on the entry
                info = ZipInfo.from_file(path, path.name, strict_timestamps=False)
                info.compress_type = ZIP_DEFLATED
                with path.open("rb") as data, archive.open(info, "w") as zip_file:
                    shutil.copyfileobj(data, zip_file, length=1 << 20)
            except OSError as exc:
                raise ArchiveError(f"Failed to add {path} to rsmf.zip: {exc}") from exc
            count += 1

    payload = buffer.getvalue()
    _logger.debug("archive.built", input_dir=str(source), entries=count, size=len(payload))
    return payload


@contextmanager
def open_archive(input_dir: Path) -> Iterator[io.BytesIO]:
    """Yield the archive as a rewound stream that is closed on every exit path."""
    stream = io.BytesIO(build_archive(input_dir))
    try:
        yield stream
    finally:
        stream.close()
