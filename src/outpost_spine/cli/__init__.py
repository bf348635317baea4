"""
CLI layer for outpost-spine.

Terminal transport only: argument parsing, JSON file input, and coloured
envelope output.  Every command delegates to the Orchestrator.

Entry point::

    outpost-spine --help
"""

from outpost_spine.cli.app import app

__all__ = ["app"]
