"""Module entrypoint for running Fluxreader as ``python -m fluxreader``."""

from __future__ import annotations

from fluxreader.cli import main


if __name__ == "__main__":
    main()
