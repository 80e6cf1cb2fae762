"""Module wrapper so running ``python -m boldqc.cli`` matches the console script."""

from boldqc.cli import main

if __name__ == "__main__":  # pragma: no cover
    main()
