"""Allow ``python -m benchkeeper`` (used when re-executing in a fresh process)."""

from benchkeeper.cli import main

if __name__ == "__main__":
    main()
