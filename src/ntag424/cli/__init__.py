"""CLI commands for ntag424.

Example:
    $ ntag424-sdm keygen
    $ ntag424-sdm profiles
"""

from ntag424.cli.sdm import cli

__all__ = ["cli"]
