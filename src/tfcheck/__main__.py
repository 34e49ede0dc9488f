"""
Entry point for running tfcheck as a module.

Allows running tfcheck with:
    python -m tfcheck check
"""

import sys

from tfcheck.cli import main

if __name__ == "__main__":
    sys.exit(main())
