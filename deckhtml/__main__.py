"""Allow ``python -m deckhtml``."""

from .cli import main

if __name__ == "__main__":
    main()
