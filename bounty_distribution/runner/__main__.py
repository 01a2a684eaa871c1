"""Entry point for running the distribution runner as a module."""

from .runner import cli

if __name__ == "__main__":
    cli()
