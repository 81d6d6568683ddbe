"""
Module entrypoint: `python -m agentreg`

Runs the operator CLI (`python -m agentreg serve` starts the API).
"""

from __future__ import annotations


def main() -> None:
    from .cli import main as cli_main
    cli_main()


if __name__ == "__main__":
    main()
