"""Entry point: python -m tamo <command> [args]

Runs the typer application. Anything not already reported as a tamo error
is logged with its full traceback to the error log in the data directory.
"""

from __future__ import annotations

import sys

import typer

from tamo.cli import app, get_config
from tamo.errors import log_exception


def main() -> None:
    try:
        app(prog_name="tamo")
    except Exception as e:
        log_path = log_exception(get_config().data_dir, context=" ".join(sys.argv[1:]))
        typer.echo(f"Unexpected error: {e} (details in {log_path})", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
