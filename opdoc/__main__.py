"""Entry point for running opdoc as a module (``python -m opdoc``)."""

from __future__ import annotations


def main() -> None:
    """Main entry point for module execution."""
    from opdoc.cli import app

    app()


if __name__ == "__main__":
    main()
