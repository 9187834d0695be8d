#!/usr/bin/env python3
"""
Cross-DEX arbitrage scanner entry point.

Equivalent to ``python -m dex``; see ``python3 run_dex.py --help``.
"""
import sys

from dex.__main__ import main

if __name__ == "__main__":
    sys.exit(main())
