"""Allow ``python -m evilian``."""

from evilian.cli import main

if __name__ == "__main__":
    main()
