"""Run the conduit supervisor."""

from conduit.cli import main

if __name__ == "__main__":
    main()
