"""Command-line interface for scoutcard reports.

This package contains the command logic; the ``scoutcard`` console script
calls :func:`scoutcard.cli.report.main`.
"""

from scoutcard.cli.report import main

__all__ = ['main']
