"""Command-line interface modules for flowcorr correction passes.

This package contains core execution logic, making scripts/ optional and deletable.
"""

from flowcorr.cli.run_corrections import run_corrections, main

__all__ = ['run_corrections', 'main']
