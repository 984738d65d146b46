"""Entry point for ``python -m sessionlog``."""

from sessionlog.cli import main

if __name__ == "__main__":
    main()
