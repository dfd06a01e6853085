"""Allow running promptevo as ``python -m promptevo``."""

from promptevo.cli.main import main

if __name__ == "__main__":
    main()
