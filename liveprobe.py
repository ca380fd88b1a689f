#!/usr/bin/env python3
"""Top-level executable shim: `python liveprobe.py ...` from a source checkout."""

from liveprobe.cli import run

if __name__ == "__main__":
    run()
