"""Module entrypoint for ``python -m lazywatch``."""

from .cli import main


if __name__ == "__main__":
    main()
