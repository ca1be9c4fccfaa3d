"""Module entrypoint for running Tourvoice as ``python -m tourvoice``."""

from __future__ import annotations

from tourvoice.cli import main


if __name__ == "__main__":
    main()
