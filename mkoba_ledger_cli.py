#!/usr/bin/env python3
"""M-Koba Contribution Ledger.

This is the main entry point script for the contribution ledger.
It wraps the package CLI for convenient execution.

Usage:
    python mkoba_ledger_cli.py --role treasurer show
    python mkoba_ledger_cli.py export --from 2025-01 --to 2025-06 -o exports/

For full documentation and options:
    python mkoba_ledger_cli.py --help
"""

import sys
from pathlib import Path

# Add src to path for development installs
src_path = Path(__file__).parent / "src"
if src_path.exists():
    sys.path.insert(0, str(src_path))

from mkoba_ledger.cli import main

if __name__ == "__main__":
    sys.exit(main())
