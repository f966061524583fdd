"""Entry point for ``python -m aem2hierarchy``."""

from aem2hierarchy.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
