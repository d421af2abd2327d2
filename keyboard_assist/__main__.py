"""Entry point for ``python -m keyboard_assist``."""

from .cli import main

if __name__ == "__main__":
    raise SystemExit(main())
