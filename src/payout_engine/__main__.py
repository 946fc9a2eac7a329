"""Entry point for ``python -m payout_engine``."""

import sys

from payout_engine.cli import main

if __name__ == "__main__":
    sys.exit(main())
