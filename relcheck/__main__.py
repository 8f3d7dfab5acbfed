# File: relcheck/__main__.py
"""
RelCheck — Module entry point.

Allows running the validator directly via::

    python -m relcheck --model model.yaml

This module simply delegates to the CLI entry point defined in ``relcheck.cli``.
"""

from __future__ import annotations


def main() -> None:
    """Delegate to the CLI main function."""
    from relcheck.cli import cli_main
    cli_main()


if __name__ == "__main__":
    main()
