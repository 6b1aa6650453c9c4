"""Allow `python -m rsmf_gen` to invoke the CLI entry-point."""

from .cli import app


def main() -> None:
    """Dispatch to the Typer CLI entry-point."""
    app(prog_name="rsmf-gen")


if __name__ == "__main__":  # pragma: no cover - manual execution path
    main()
