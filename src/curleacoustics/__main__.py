"""Command-line interface."""
import sys

from curleacoustics.main import main

if __name__ == "__main__":
    sys.exit(main())
