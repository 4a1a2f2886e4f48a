"""Allow ``python -m pagepilot``."""

from .cli import main

if __name__ == "__main__":
    main()
