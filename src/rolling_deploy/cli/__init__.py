"""Command-line interface."""

from rolling_deploy.cli.main import cli, main

__all__ = ['cli', 'main']
