"""
Module entry-point that makes the package runnable with

    python -m boldqc
    python -m boldqc.cli

The behaviour is identical to the *boldqc-cli* console script because the
Click group imported below performs all dispatching.
"""

from boldqc.cli import main

if __name__ == "__main__":  # pragma: no cover
    main()
