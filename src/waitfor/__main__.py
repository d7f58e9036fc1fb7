"""Module entrypoint for `python -m waitfor`."""

from __future__ import annotations

from . import main

if __name__ == "__main__":  # pragma: no cover - CLI invocation guard
    raise SystemExit(main())
