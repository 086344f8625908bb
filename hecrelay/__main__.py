"""Entry point for `python -m hecrelay`.

Usage:
    python -m hecrelay forward --provider aws payload.json
    python -m hecrelay check
"""

from __future__ import annotations

from hecrelay.cli import cli

cli()
