# File: apiwizard/__main__.py
"""
NexaFlow APIWizard: Module entry point.

Allows running the workflow directly via::

    python -m apiwizard --service mysql_db --all-tables --preview-only

This module simply delegates to the CLI entry point defined in ``apiwizard.cli``.
"""

from __future__ import annotations


def main() -> None:
    """Delegate to the CLI main function."""
    from apiwizard.cli import cli_main
    cli_main()


if __name__ == "__main__":
    main()
