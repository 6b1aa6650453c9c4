import json
from pathlib import Path
from typing import Any, Callable

import pytest

from rsmf_gen.config import clear_settings_cache

MANIFEST_NAME = "rsmf_manifest.json"


@pytest.fixture
def manifest_data() -> dict[str, Any]:
    """A small two-participant, two-event manifest with one attachment reference."""
    return {
        "version": "2.0.0",
        "participants": [
            {"id": "P1", "display": "Alice Example", "email": "alice@example.com"},
            {"id": "P2", "display": "Bob Example", "email": "bob@example.com", "avatar": "bob.png"},
        ],
        "conversations": [
            {"id": "C1", "display": "Team chat", "participants": ["P1", "P2"]},
        ],
        "events": [
            {
                "id": "E2",
                "participant": "P2",
                "conversation": "C1",
                "timestamp": "2023-01-02T00:00:00Z",
                "body": "hi",
                "reactions": [{"value": "thumbsup", "participants": ["P1"]}],
            },
            {
                "id": "E1",
                "participant": "P1",
                "conversation": "C1",
                "timestamp": "2023-01-01T00:00:00Z",
                "body": "hello",
                "attachments": [{"id": "notes.txt", "display": "notes.txt", "size": 11}],
            },
        ],
    }


@pytest.fixture
def isolated_env(monkeypatch):
    """Provide isolated RSMF settings for tests and reset caches."""
    for key in (
        "RSMF_GENERATOR",
        "RSMF_CUSTODIAN_DISPLAY",
        "RSMF_CUSTODIAN_EMAIL",
        "RSMF_VALIDATE",
        "RSMF_BODY_INCLUDE_CONVERSATION",
        "RSMF_BODY_INCLUDE_TIMESTAMP",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("APP_ENVIRONMENT", "test")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    clear_settings_cache()
    try:
        yield
    finally:
        clear_settings_cache()


@pytest.fixture
def make_input_dir(tmp_path: Path) -> Callable[..., Path]:
    """Return a helper that writes a manifest plus attachment files into a fresh directory.

    Usage: input_dir = make_input_dir(manifest_dict, files={"notes.txt": b"..."})
    Pass ``manifest_text`` to write raw (possibly malformed) manifest content.
    """
    counter = {"n": 0}

    def _make(
        manifest: dict[str, Any] | None = None,
        *,
        files: dict[str, bytes] | None = None,
        manifest_text: str | None = None,
    ) -> Path:
        counter["n"] += 1
        directory = tmp_path / f"input{counter['n']}"
        directory.mkdir()
        if manifest_text is not None:
            (directory / MANIFEST_NAME).write_text(manifest_text, encoding="utf-8")
        elif manifest is not None:
            (directory / MANIFEST_NAME).write_text(json.dumps(manifest, ensure_ascii=False), encoding="utf-8")
        for name, data in (files or {}).items():
            (directory / name).write_bytes(data)
        return directory

    return _make


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "out"
    directory.mkdir()
    return directory
