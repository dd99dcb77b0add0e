"""Module entrypoint for ``python -m promptree``.

This keeps module-mode execution behavior identical to the CLI script.
All argument parsing and session setup happen in ``promptree.cli``.
"""

from .cli import main


if __name__ == "__main__":
    raise SystemExit(main())
