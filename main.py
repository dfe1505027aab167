#!/usr/bin/env python3
"""
PathFuzz - Concurrent web path fuzzer and crawler

Launcher for running from a source checkout.

Usage:
    python main.py scan -u https://example.com/FUZZ -w common.txt
    python main.py analyze results.json
"""

import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent / "src"))

from pathfuzz.cli import cli


if __name__ == '__main__':
    cli()
