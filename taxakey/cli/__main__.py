"""
TaxaKey CLI entry point.

Usage:
    python -m taxakey.cli rank --obs WEB=yes
    python -m taxakey.cli suggest --obs WEB=yes
    python -m taxakey.cli explain mallard --obs WEB=yes
    python -m taxakey.cli info
"""

import sys
from .main import main

if __name__ == "__main__":
    sys.exit(main())
