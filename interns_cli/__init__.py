"""Operator CLI for the interns API.

The command surface is implemented with Typer and Rich; ``--json`` keeps the
raw API responses machine-friendly.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
