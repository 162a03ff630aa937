#!/usr/bin/env python3
"""
Roast Studio backend launcher
"""

from roast_studio.main import app, run  # noqa: F401

if __name__ == "__main__":
    run()
