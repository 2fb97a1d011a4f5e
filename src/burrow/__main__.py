"""Entry point for `python -m burrow`."""

from burrow.cli.main import cli

if __name__ == "__main__":
    cli()
