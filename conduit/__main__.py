"""
Entry point for running conduit via `python -m conduit`.

Starts lnd under supervision, see cli.py for the options.
"""

from .cli import main

if __name__ == "__main__":
    main()
